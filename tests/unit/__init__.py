"""
Unit tests for BatchFlow modules.

This package contains unit tests for:
- capabilities: CapabilityBundle, Capabilities and TaskScope
- pool: ExecutionPool lifecycle, submission and cancellation
- scheduler: polling loop, timeout/completion tie-break
- task: Task transitions, id generation, activity log
- progress / sinks: snapshots, reporters, dashboard sinks
- results: collection and export
- config / jobs / cli: configuration, job files, command line
"""
