# duputil

`duputil` drives the `duplicacy` command-line backup tool from a scheduler
(cron, systemd timers, Task Scheduler). For one repository configuration it
runs any combination of `backup`, `copy`, `prune` and `check`, writes a log of
each run, keeps a rotating set of compressed older logs and prevents
overlapping runs with a lock file.

## Installation

```
pip install duputil
```

The `duplicacy` executable must be on your `PATH`, or its location set in the
global configuration; the `duputil` command refuses to start otherwise.

## Storage directory

Configuration, lock and log files live in a storage directory. By default this
is `~/.duplicacy-util`, which must already exist. Another existing directory
can be given with `-sd`.

## Global configuration

If the storage directory holds `duplicacy-util.yaml` (or `.yml` / `.json`) it is
read; a different file can be named with `-g`, and that file must then exist
and have one of those extensions.

```yaml
duplicacypath: /usr/local/bin/duplicacy
lockdirectory: /var/lock/duputil
logdirectory: /var/log/duputil
logfilecount: 5
```

Defaults: `duplicacy`, the storage directory, `<storage directory>/log` (created
if missing) and 5. The lock and log directories must exist. A non-empty
environment variable with the key's name in upper case (for example
`DUPLICACYPATH`) takes precedence over the file. A `logfilecount` below 2 is
reported on standard error.

A `notifications` section may list channels under `onStart`, `onSkip`,
`onSuccess` and `onFailure`; see "Notifications" below.

## Repository configuration

Each repository has its own file in the storage directory, for example
`myrepo.yaml`:

```yaml
repository: /home/me/documents

storage:
  - name: b2
    threads: 10
  - name: azure-direct
    threads: 5
    vss: true
    vssTimeout: 300

copy:
  - from: b2
    to: azure
    threads: 10

prune:
  - storage: b2
    keep: "0:365 30:180 7:30 1:7"
  - storage: azure
    keep: "0:365 30:180 7:30 1:7"
    all: false

check:
  - storage: b2
    all: true
  - storage: azure
```

Required: an existing `repository` directory (the `REPOSITORY` environment
variable overrides it), at least one `storage` entry with `name`, at least one
`prune` entry with `storage` and `keep`, and at least one `check` entry with
`storage`; every `copy` entry needs `from` and `to`. Each `keep` value is
expanded to `-keep` arguments. Prune passes `-all` unless `all: false`; check
passes `-all` only with `all: true`; backup passes `-vss` only with
`vss: true`. Any entry may add `quote`, extra arguments handed to duplicacy
split on spaces. The older layout with numbered keys
(`storage: {1: {...}, 2: {...}}`) is still read, with a warning.

## Running

```
duputil -f myrepo -a
```

| Option      | Meaning                                                      |
|-------------|--------------------------------------------------------------|
| `-f NAME`   | repository configuration to use (required)                   |
| `-g FILE`   | global configuration file                                    |
| `-sd DIR`   | storage directory                                            |
| `-a`        | perform all operations (backup, copy, prune, check)          |
| `-backup`   | perform the backup operation                                 |
| `-copy`     | perform the copy operation                                   |
| `-prune`    | perform the prune operation                                  |
| `-check`    | perform the check operation                                  |
| `-tn`       | send test notifications through the configured notifiers     |
| `-d`        | debug output (implies `-v`)                                  |
| `-v`        | verbose output                                               |
| `-q`        | quiet; refused unless a failure notifier is configured       |
| `-version`  | show the version and exit                                    |

Operations run in the order backup, copy, prune, check. Exit status:

| Status | Meaning                                                          |
|--------|------------------------------------------------------------------|
| 0      | success                                                          |
| 1      | invalid repository configuration, or no operation selected      |
| 2      | stray arguments, missing `-f`, storage directory or global configuration error |
| 201    | the lock file could not be taken                                 |
| 500    | a duplicacy command failed                                       |
| 6200   | another run for the same configuration holds the lock; skipped   |

## Logs

Each run writes `<logdirectory>/<name>.log` with duplicacy's full output.
Before a run the previous log is compressed to `<name>.log.1.gz` (keeping its
timestamps) and older archives move up by one, up to
`<name>.log.<logfilecount - 1>.gz`.

## Notifications

Notifiers implement `duputil.notify.Notifier` (`notify_of_start`,
`notify_of_skip`, `notify_of_success`, `notify_of_failure`). Channels named in
the global configuration are built from the `notifier_factories` mapping of
`duputil.cli.App`: each factory is called with the parsed global settings and
returns a notifier; duplicate notifiers in one list are dropped.

## What is not included

No notification channel is built in. The `duputil` command has no factories,
so any channel listed under `notifications` is rejected as invalid, and `-tn`
and `-q` only work when you run `App` with your own factories. In particular
nothing sends e-mail: `duputil.report.generate_html_body` builds the HTML
summary of a run (backup and copy statistics plus the log text), but
delivering it is left to your notifier.

## Using it as a library

- `duputil.timeutils.time_diff_string(start, end)` — durations such as
  `"1 day, 3:02:05"`.
- `duputil.config_backup.BackupConfiguration(config_filename=...).load(storage_dir)`
  — read and validate a repository file; raises `ConfigurationError`.
- `duputil.config_global.load_global_config(storage_dir, ...)` — returns a
  `GlobalConfig`; raises `GlobalConfigError`.
- `duputil.backup_ops.BackupRunner(config=...).perform_backup(Operations.everything())`
  — run operations; statistics accumulate in its `report`.
- `duputil.checkpoint` — read and write `<name>_checkpoint.yaml` files.
- `duputil.cli.App(parse_arguments(argv), notifier_factories=...).run()` — the
  whole program, returning the exit status.