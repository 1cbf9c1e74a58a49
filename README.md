# kustodata

Client-side building blocks for working with Kusto clusters, written with
nothing but the Python standard library.

## Modules

- `kustodata.kql` — `Builder`, which composes KQL text with safe quoting of
  values and identifiers, and `Parameters`, which holds named, typed query
  parameters and renders them with `to_declaration_string()` and
  `to_parameter_collection()`. `normalize_name()` bracket-quotes a name that
  is not a plain identifier.
- `kustodata.kql_format` — the formatting rules underneath: `quote_string`,
  `requires_quoting`, `should_be_escaped`, `format_timespan`,
  `format_datetime` and `quote_value`, plus the `KustoType` enum and the
  `KustoValue` dataclass (a value of `None` is the type's null).
- `kustodata.errors` — `KustoError`, `HttpError` and `CombinedError`, the
  `Op` and `Kind` enums, the constructors `new_error`, `new_error_string`,
  `from_http` and `wrap`, and `retry()`, which decides whether a failure may
  be attempted again. `combine_errors()` merges several errors, dropping
  `None` and duplicates by message.
- `kustodata.response` — `translate_body(body, content_encoding, op)`
  returns a stream that decodes a `gzip` or `deflate` body; an empty encoding
  returns the body unchanged and any other encoding raises `KustoError`.
- `kustodata.client_details` — `ClientDetails` and the helpers that build
  tracing values: `build_header_format`, `escape`, `get_os_user`,
  `default_tracing_values` and `set_connector_details`.
- `kustodata.cloudinfo` — `get_metadata()` fetches a cluster's
  authentication metadata as a `CloudInfo` and caches it per URI.

## Installing

    pip install .

To run the tests:

    pip install ".[test]"
    pytest

## Building a query

```python
from datetime import datetime, timezone
from kustodata.kql import Builder, Parameters

query = (
    Builder("MyTable | where Name == ")
    .add_string('say "hi"')
    .add_literal(" and Time > ")
    .add_datetime(datetime(2019, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
)
print(query)
# MyTable | where Name == "say \"hi\"" and Time > datetime(2019-01-02T03:04:05Z)

params = Parameters().add_string("tableName", "logs").add_int("limit", 10)
print(params.to_declaration_string())
# declare query_parameters(tableName:string, limit:int);
print(params.to_parameter_collection())
# {'tableName': '"logs"', 'limit': 'int(10)'}
```

Identifiers that need escaping are bracketed for you:

```python
from kustodata.kql import Builder

print(Builder("").add_table("my table").add_literal(" | count"))
# ["my table"] | count
```

`add_keyword()` and `Parameters.add_value()` raise `ValueError` when given a
name that would need escaping.

## Errors

```python
from kustodata.errors import Kind, Op, new_error_string, retry

err = new_error_string(Op.QUERY, Kind.INTERNAL, "some type of client error")
print(err)         # Op(OpQuery): Kind(KInternal): some type of client error
print(retry(err))  # False
```

Errors of kind `TIMEOUT` are retryable unless marked with `set_no_retry()`;
for `HTTP_ERROR`, a JSON body with `"@permanent": true` under `"error"`
makes the error permanent.

## Tracing details

```python
from kustodata.client_details import ClientDetails, set_connector_details

details = ClientDetails(application="myapp")
print(details.application_for_tracing())  # myapp

app, user = set_connector_details("testName", "testVersion", "testApp", "1.0", False, "")
print(app)   # Kusto.testName:{testVersion}|App.{testApp}:{1.0}
print(user)  # [none]
```

## Cloud metadata

```python
from kustodata.cloudinfo import get_metadata

info = get_metadata("https://mycluster.example.com")
print(info.login_endpoint)
```

An optional `urllib.request.OpenerDirector` may be passed as the second
argument. A 404 or an empty body yields `DEFAULT_CLOUD_INFO`; any other
status of 300 or above raises a `KustoError` of kind `HTTP_ERROR`.

## What this package does not do

It has no client or connection object: it does not send queries or
management commands, acquire authentication tokens, parse query result
frames, or ingest data. It provides the pieces such a client is built from —
statement text, parameters, errors, body decoding, tracing values and cloud
metadata.