"""Executor state machine, resource locks, Terraform output parsing, workspaces and live messages."""