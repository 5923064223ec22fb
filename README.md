# prism

A library of building blocks for a platform that runs Terraform
configurations: a database schema and data access classes for execution tasks,
locks and a catalog of providers, plugins, configuration entries and
resources; per-resource locks held in memory or in the database; a lifecycle
state machine for executors; a parser for Terraform's JSON output and state
files; per-task working directories; and a hub that fans live messages out to
subscribers of a task.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Models and data access

`prism.models` defines the SQLAlchemy models `ExecutionLock`, `ExecutionTask`,
`Plugin`, `Provider`, `TerraformConfig`, `TerraformConfigMetadata`,
`TerraformConfigParam`, `TerraformResource`, `TerraformResourceAttribute` and
`TerraformResourceOutput` on the declarative `Base`, with `TaskStatus`
(`PENDING`, `RUNNING`, `SUCCESS`, `FAILED`, `CANCELLED`). A new model instance
already carries its column defaults. `ExecutionTask.is_retryable()` is true for
failed and cancelled tasks.

Every data access class takes a SQLAlchemy `Engine` and creates its own table
if it is missing. Lookups that find nothing raise
`prism.models.RecordNotFoundError`.

```python
from sqlalchemy import create_engine

from prism.dao.execution import ExecutionTaskDAO
from prism.models import TaskStatus

engine = create_engine("sqlite://")
tasks = ExecutionTaskDAO(engine)

tasks.create("task-1", 100, "apply")
tasks.start("task-1")
tasks.complete("task-1", False, "", "terraform apply failed")

assert tasks.get("task-1").status is TaskStatus.FAILED
assert tasks.can_retry("task-1")
tasks.reset("task-1")  # back to pending
```

- `prism.dao.execution`: `ExecutionLockDAO` (acquire, release, get,
  is_locked, update_status, extend, clean_expired; locks expire after 30
  minutes unless another `timedelta` is given) and `ExecutionTaskDAO` (create,
  get, update_status, start, complete, reset, list_by_resource, list_failed,
  delete, can_retry).
- `prism.dao.catalog`: `PluginDAO`, `ProviderDAO` (including `get_default`,
  `list_enabled` and `set_default`, which clears the default flag of other
  providers of the same name), `TerraformConfigDAO`,
  `TerraformConfigMetadataDAO` and `TerraformConfigParamDAO`.
- `prism.dao.resources`: `TerraformResourceDAO`,
  `TerraformResourceAttributeDAO` (with `create_batch`, which inserts in one
  transaction, flushing every hundred rows) and `TerraformResourceOutputDAO`.

The `update` methods insert or overwrite a row by its primary key.

## Locks

`prism.executor.lock` provides the `LockManager` interface with two backends,
`MemoryLocker` (this process only) and `DBLocker` (rows of the
`execution_lock` table). Both take an optional `LockConfig`; `default_config()`
gives a memory lock expiring after 30 minutes.

```python
from datetime import timedelta

from prism.executor.lock import LockConfig, LockError, MemoryLocker

locker = MemoryLocker(LockConfig(expire_time=timedelta(seconds=5)))
locker.acquire(1, "task-1")
try:
    locker.acquire(1, "task-2")
except LockError as err:
    print(err)  # resource 1 is locked by task task-1
locker.release(1)
```

`status(resource_id)` returns a `LockStatus` or `None`; `is_locked` ignores
expired locks, and `acquire` replaces an expired lock.

## Executor state

`prism.executor.base` holds the request and result types (`ExecuteRequest`,
`ExecuteResult`, `Progress`, `Action`, `Status`), the abstract `Executor`
interface and `BaseExecutor`, which tracks progress and moves through the
events `start` (pending to running), `success`, `fail` (from running) and
`cancel` (from pending or running). A disallowed or unknown event raises
`TransitionError`. `cancel()` calls `cancel_callback` if one is set, then
applies `cancel`.

```python
from prism.executor.base import BaseExecutor, Status

state = BaseExecutor()
state.transition("start")
state.update_progress("plan", 30, "planning")
state.transition("success")
assert state.status is Status.SUCCESS
assert state.progress.percent == 30
```

## Parsing Terraform output

```python
from prism.executor.parser import Parser

parser = Parser()
info = parser.parse_plan("Plan: 3 to add, 1 to change, 2 to destroy.")
print(info.to_add, info.to_change, info.to_destroy)  # 3 1 2
```

- `Parser.parse_json_output` reads the one-object-per-line stream written with
  `-json` into a `ParseResult` (messages, change summary, diagnostics, version,
  and `success`, false once an error diagnostic is seen).
- `Parser.parse_plan` takes the change counts from a `change_summary` message,
  or else from a text `Plan:` line.
- `Parser.parse_tfstate` maps `type.name.id` and `type.name.arn` to their
  values for each resource instance in a state file.
- `Parser.parse_tfstate_json` decodes a state file into `TfState`; invalid
  input raises `ValueError`.
- `Parser.extract_attributes` looks up dotted paths such as
  `resources.0.instances.0.attributes.id`; names whose path is absent are left
  out.
- `parse_message` decodes a single output line into a `TerraformMessage`.

## Workspaces

`prism.executor.workspace.WorkspaceManager` creates task directories laid out
as `<base>/<provider>/<region>/<resource>/<task>`, writes and reads files in
them, and removes them with `clean` (which refuses an empty path and `/`).

## Live messages

`prism.executor.hub.Hub` groups `Client` objects by task id and broadcasts
`Message`s to them as JSON strings with `type`, `task_id`, `data` and `time`.
Each client has a bounded buffer; a full buffer skips the message.

```python
from prism.executor.hub import Client, Hub

hub = Hub()
client = Client("task-1")
hub.register(client)
hub.send_log("task-1", "Initializing...")
print(client.receive())  # {"type": "log", "task_id": "task-1", "data": "Initializing...", ...}
hub.unregister(client)
```

`send_progress` takes a `ProgressData`; `send_complete` sends
`{"success": ..., "result": ...}`.

## What this package does not do

- It does not run Terraform or any other program: there is no concrete
  executor that drives `init`, `plan`, `apply` or `destroy`, and no command
  runner. `Executor` is an interface only.
- It has no command-line tool; tables are created by the data access classes
  when they are constructed.
- It does not open database connections from a configuration: you create the
  SQLAlchemy `Engine` yourself.
- It does not set up logging.
- The hub queues messages in memory; it does not serve WebSocket connections.