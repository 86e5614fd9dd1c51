# trellisweb

Building blocks for a small web framework, each usable on its own. The
package has no dependencies outside the standard library.

- `trellisweb.http`: `Request` and `Response` values, plus
  `resolve_content_type`, `resolve_format` ("html", "json", "xml" or "txt")
  and `resolve_accept_language` (ranges sorted most qualified first).
- `trellisweb.params`: `parse_params(request)` collects the query string,
  urlencoded form values and multipart fields and files (`UploadedFile`) into
  a `Params`; `Params.values()` merges fixed, query, route and form values.
- `trellisweb.i18n`: `MessageCatalog` loads `name.xx` message files, looks up
  messages with regional sections, `%(key)s` references and a default
  language, and returns `"??? key ???"` for unknown messages.
  `resolve_locale` picks a locale from a cookie or `Accept-Language`.
- `trellisweb.router`: parses routes files (`parse_routes`,
  `parse_routes_file`), matches requests (`Router.route`), builds URLs from
  actions (`Router.reverse`) and applies a form's `_method` override
  (`override_method`, raising `MethodNotAllowed`).
- `trellisweb.appmodules`: the application's directory layout (`AppPaths`,
  `make_app_paths`) and loaded modules (`Module`, `add_module`,
  `module_by_name`), used by the router for `module:` lines.
- `trellisweb.exempt`: `ExemptList` marks paths (case-insensitive) or
  `Controller.Action` names as exempt from CSRF checks.
- `trellisweb.intercept`: `InterceptorRegistry` runs interceptors at the
  `When.BEFORE`, `AFTER`, `PANIC` and `FINALLY` stages around an action.
- `trellisweb.jobs`: `JobRunner` runs jobs now, after a delay or at a fixed
  interval, with a pool limit; a `Job` logs its exceptions instead of raising
  them and by default never overlaps with itself.
- `trellisweb.mail`: `Message` renders an e-mail (plain, HTML or both);
  `Mailer` sends messages over SMTP.
- `trellisweb.signing`: hex HMAC-SHA1 `sign(message, secret_key)` and
  `verify(message, signature, secret_key)`.

## Install

```
pip install .
```

## Routing

```python
from trellisweb.router import Router, parse_routes

routes = parse_routes("", "", """
GET   /                      Application.Index
GET   /app/:id/              Application.Show
*     /:controller/:action   :controller.:action
""", [], "")

router = Router("")
router.routes = routes
router.update_tree()

match = router.route("GET", "/app/123", {})
print(match.controller_name, match.method_name, match.params)
# Application Show {'id': ['123']}

print(router.reverse("Application.Show", {"id": "123"}).url)  # /app/123/
```

`Router("conf/routes").refresh()` reads a routes file and builds the table;
problems with the file raise `RouteError`.

## Messages

```python
from trellisweb.i18n import MessageCatalog

catalog = MessageCatalog(default_language="en")
catalog.load("messages")
print(catalog.message("en-AU", "greeting"))
```

## Interceptors

```python
from trellisweb.intercept import ALL_CONTROLLERS, InterceptorRegistry, When

registry = InterceptorRegistry()
registry.intercept_func(lambda controller: None, When.BEFORE, ALL_CONTROLLERS)
registry.run(controller, action)  # controller.result holds any result
```

## Jobs

```python
from trellisweb.jobs import JobRunner

with JobRunner(pool_size=10) as runner:
    runner.every(60, lambda: print("tick"))
    runner.after(5, lambda: print("once"))
```

## Mail

```python
from trellisweb.mail.mailer import Mailer, Sender
from trellisweb.mail.message import text_message

password = "password"
mailer = Mailer(server="smtp.example.com", port=587,
                username="user@example.com", password=password,
                sender=Sender(from_addr="user@example.com"))
mailer.send_message(text_message(["friend@example.com"], "Hello", "Hi there"))
```

`Mailer.send_with(client, ...)` sends over an already open `smtplib.SMTP`
connection.

## What it does not do

There is no HTTP server, no controller or action dispatch, no template
rendering and no application configuration loading; `Request` and `Response`
are plain values that a server would fill in and send. `ExemptList` only
records exemptions, it does not issue or check CSRF tokens. `JobRunner`
schedules by fixed interval only, not by cron expressions.

## Tests

```
pip install .[test]
pytest
```