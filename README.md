# waterdrop

Building blocks for services:

- **`waterdrop.breaker`**: an adaptive circuit breaker that follows the Google SRE
  client-side throttling formula. Breakers are kept in a shared, name-keyed group.
- **`waterdrop.tomlparser`**: turns TOML documents into dictionaries and back.
- **`waterdrop.fileprovider`**: reads a file and can report when it changes.

## Installation

```
pip install .
```

Add the `test` extra to get the test requirements as well:

```
pip install ".[test]"
```

## Circuit breaker

Each `GoogleSreBreaker` counts outcomes in a rolling window, by default 10 seconds
split into 40 buckets. A request is dropped with probability

    max(0, (total - K * accepted) / (total + 1))

where `K` defaults to 1.5. While most requests succeed, nothing is dropped. As
failures build up, more requests are turned away.

```python
from waterdrop.breaker import new_breaker_group, ServiceUnavailableError

group = new_breaker_group()          # the shared, process-wide group

def call_backend():
    ...                              # raise on failure

try:
    group.do("backend", call_backend, lambda err: err is None)
except ServiceUnavailableError:
    ...                              # the breaker dropped the request
```

`do` first asks the breaker; if it refuses, `ServiceUnavailableError` is raised and
`run` is not called. Otherwise it passes the outcome of `run` to `accept`: `None`
when `run` returned, or the exception when it raised. A `True` result counts as a
success and `False` as a failure. If `run` raised, the exception is re-raised once
the outcome is recorded; if not, `do` returns what `run` returned.

A breaker can also be driven by hand:

```python
breaker = group.get("backend")
breaker.allow()      # raises ServiceUnavailableError when the request is dropped
breaker.accept()     # record a success
breaker.reject()     # record a failure
breaker.summary()    # (successes, total) within the window
breaker.state        # BreakerState.OPEN or BreakerState.CLOSED
```

Breakers with other settings are made directly:

```python
from waterdrop.breaker import GoogleSreBreaker, GoogleSreBreakerConfig, Proba

breaker = GoogleSreBreaker(
    GoogleSreBreakerConfig(k=2.0, window=5.0, bucket_size=10, name="search"),
    proba=Proba(seed=42),
)
```

`window` is in seconds. A `bucket_size` or `window` that is not positive raises
`ValueError`. A `clock` keyword (a callable returning seconds) may replace
`time.monotonic`, which is handy in tests. Custom breakers subclass `Breaker` and
implement `allow`, `accept` and `reject`.

## TOML parsing

```python
from waterdrop.tomlparser import TomlParser

parser = TomlParser()
data = parser.unmarshal(b'[server]\nport = 8080\n')   # bytes or str
assert data == {"server": {"port": 8080}}
text = parser.marshal(data)                            # TOML as bytes
```

Invalid TOML raises `tomllib.TOMLDecodeError`.

## File source

```python
from waterdrop.fileprovider import FileProvider

provider = FileProvider("config/app.toml", watch=True)
raw = provider.read_bytes()

if provider.watch_enabled:
    observer = provider.watch(lambda: print("changed"))
    ...
    observer.stop()
```

`watch` raises `FileNotFoundError` if the file does not exist. It watches the
file's directory and follows symlinks, so a swapped link target is picked up. The
callback runs, on the observer's thread, when the file is created or written,
including when another file is moved onto its path. Watching stops once the file
is removed. `watch` returns the running watchdog observer, which the caller may
stop.

## What this package does not do

There is no configuration loader tying `FileProvider` and `TomlParser` together:
no dotted key lookup, no filling of objects from a section, no reload hooks and no
process-wide configuration. Read the bytes and parse them yourself, and use
`FileProvider.watch` to reload when the file changes. There is also no command-line
program.