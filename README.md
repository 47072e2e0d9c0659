# aiskit

Building blocks for backend services:

- **Identifiers** (`aiskit.ids.ulid`, `aiskit.ids.snowflake`): monotonic ULIDs
  (26-character Crockford Base32, time-ordered) and 64-bit Snowflake ids.
- **Validation** (`aiskit.validator.validator`): dataclass validation driven by
  field metadata, with custom messages per rule.
- **Uniform JSON replies** (`aiskit.response`): `{"code", "msg", "data"}` bodies
  paired with the HTTP status to send.
- **Graceful shutdown** (`aiskit.shutdown`): hooks run by priority, equal
  priorities in parallel, with a per-hook deadline and a global timeout.
- **Transport helpers** (`aiskit.transport.http_server`,
  `aiskit.transport.grpc_server`): a threaded WSGI server with `/healthz` and
  `/readyz`, and gRPC server/client construction with recovery and logging
  interceptors.
- **Tenant primitives** (`aiskit.repository.tenant`, `.options`,
  `.base_model`): a context-local `TenantContext`, query option builders, a
  page result type and a SQLAlchemy mixin with a ULID key, timestamps and a
  soft-delete flag.

Install with `pip install .`; the tests need the `test` extra.

## Identifiers

```python
from datetime import datetime, timezone
from aiskit.ids import ulid, snowflake

uid = ulid.generate()
print(str(uid))                          # 26 characters
print(ulid.is_zero(ulid.zero()))         # True

same = ulid.parse(str(uid))              # ValueError on bad input
assert ulid.compare(uid, same) == 0

t = ulid.time_of(ulid.generate_with_time(datetime(2024, 1, 1, tzinfo=timezone.utc)))

# ULID <-> UUID share the same 128 bits
as_uuid = ulid.to_uuid_string(uid)
back = ulid.from_uuid_string(as_uuid)

batch = ulid.generate_batch(5)           # strictly increasing, one timestamp

gen = snowflake.Generator(1)             # node id 0..1023, else ConfigError
sid = gen.generate()
timestamp_ms, node = snowflake.parse(sid)
```

`ulid.Generator(entropy)` takes a callable returning random bytes (default
`os.urandom`). The module-level `snowflake.generate()` uses the node id from
the `SNOWFLAKE_NODE_ID` environment variable (see `node_id_from_env()`),
falling back to 0 when it is unset or invalid. Give every instance of a
deployment its own node id.

## Validation

```python
from dataclasses import dataclass, field
from aiskit.validator.validator import Validator
from aiskit.validator.validation_error import ValidationError

@dataclass
class Signup:
    email: str = field(default="", metadata={
        "validate": "required,email",
        "error_msg": "required:email is required|email:email is invalid",
    })

try:
    Validator().validate(Signup(email="someone@example.com"))
except ValidationError as exc:
    print(exc.get("email"), exc.has_errors())
```

`validate` raises a `ValidationError` grouping messages by dotted field path
(nested dataclasses are walked). Built-in rules include `required`,
`omitempty`, `eq`, `ne`, `len`, `min`, `max`, `gt`, `gte`, `lt`, `lte`,
`oneof`, `email`, `uuid`, `url`, `ip`, `ipv4`, `ipv6` and several string
checks; add your own with `register_validation(tag, fn, call_even_if_null)`.
`parse_error_message_tag` turns an `error_msg` string into a rule-to-message
mapping.

## Responses

```python
from aiskit import response

reply = response.ok_with_data({"id": 1})
reply.status_code                        # 200
reply.to_json()                          # {"code": 200, "msg": "ok", "data": {"id": 1}}

response.not_found("user not found")
response.page_data(items, total=100, page=1, page_size=10)
```

`error(err)` treats an exception with integer `code` and `http_status` and a
string `message` (anywhere in its `__cause__` chain) as a business error and
uses its status; anything else becomes a 500. `error_with_code(code, err)`
overrides the status unless `code` is 500.

## Graceful shutdown

```python
from aiskit.shutdown import Manager, default_config, PRIORITY_LAST

manager = Manager(default_config(), logger)
manager.register_hook("http", lambda ctx: server.stop())
manager.register_hook_with_priority("db", lambda ctx: engine.dispose(), PRIORITY_LAST)
manager.wait()       # main thread: blocks until SIGINT / SIGTERM / SIGQUIT, then shuts down
```

`shutdown()` may also be called directly; only the first call runs the hooks.
Each hook receives a `HookContext` (`done()`, `wait(timeout)`, `remaining()`)
and signals failure by raising. `is_shutdown()` and
`wait_for_shutdown(timeout)` report completion.

## HTTP and gRPC

```python
from aiskit.transport.http_server import HTTPServer, HTTPConfig, make_wsgi_app

server = HTTPServer(HTTPConfig(host="127.0.0.1", port=8080), make_wsgi_app(db_ping=None))
server.start()
...
server.stop()
```

`build_listen_config` fills in defaults (`tcp4`, 10 s shutdown timeout, mode
`0o770`, TLS 1.2). TLS is enabled when both certificate files are set; prefork
is logged and ignored.

```python
from aiskit.transport.grpc_server import GrpcConfig, new_server, new_client

config = GrpcConfig(port=50051)
server = new_server(config)              # bound, not started; register servicers, then start()
channel = new_client(config, "localhost:50051")
```

In `monolith` mode the server listens on a per-process Unix socket and
clients connect to it regardless of target. Interceptors apply to unary-unary
methods.

## Tenant context and models

```python
from aiskit.ids import ulid
from aiskit.repository.tenant import TenantContext, with_tenant_context, tenant_from_context

with with_tenant_context(TenantContext(tenant_id=ulid.generate(), is_admin=True)):
    assert tenant_from_context() is not None
```

`aiskit.repository.base_model.BaseModel` is a mixin for SQLAlchemy
declarative models; it assigns a ULID `id` before insert when unset.
`aiskit.repository.options` provides `with_preloads`, `with_scopes`,
`with_order_by`, `with_select`, `with_joins`, `apply_options` and a generic
`PageResult`.

## What is not included

The package has no repository class that runs queries: there is no CRUD,
tenant-scoped querying, aggregation, pagination or transaction helper.
`TenantContext`, the query options and `PageResult` are the pieces such a
layer would use, but applying tenant filters to your queries is left to your
own code. There is no command-line program and no metrics endpoint.