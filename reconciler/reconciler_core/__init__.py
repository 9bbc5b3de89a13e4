"""
reconciler_core — Self-healing Agent Deployment Reconciler v1.0
===============================================================
Architecture: one synchronous pass per invocation. No daemon, no state
carried between runs; every decision re-reads the live machine.

  constants.py    → Version, defaults, timeouts, service name pattern
  config.py       → Paths, logging, settings load (file + env)
  http_client.py  → HTTP session with retry/pooling, TLS 1.2+, fetch/download
  platform_win.py → Windows: process invocation, sc.exe service primitives, admin check
  state.py        → Data model (AgentVersion, ServiceRunState, ...)
  results.py      → ErrorKind taxonomy + StepResult
  runlog.py       → RunLogger (per-run accumulator) + event log sink
  network.py      → NetworkProbe (name resolution + TCP reachability)
  version.py      → VersionOracle (installed vs. published version)
  service.py      → ServiceController (status/start/stop with bounded wait)
  configsync.py   → ConfigSynchronizer (fetch policy, write only on change)
  installer.py    → ArtifactInstaller (download, extract, register, remove)
  engine.py       → ReconciliationEngine (decision tree + reinstall recovery)
  runner.py       → main(): bootstrap, wiring, sink hand-off, fixed exit code
"""
