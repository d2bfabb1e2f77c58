"""relman monitor — read-only rendering of reports and store snapshots.

Modules
-------
renderer
    ``ReleaseRenderer`` turns build, upgrade, rollback, cleanup and status
    reports into Rich renderables for terminal display.
"""
