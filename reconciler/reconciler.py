"""
Agent Reconciler — Scheduled Deployment Pass
============================================
Brings the monitoring agent (Sysmon by default) to the desired state:
installed, latest version, current policy, running. Meant to be launched
by the Task Scheduler at every boot; one pass, then exit.

Usage:
    python reconciler.py [--settings PATH]
"""

from reconciler_core.runner import main


if __name__ == "__main__":
    main()
