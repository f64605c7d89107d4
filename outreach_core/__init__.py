"""
Outreach Core.

External task orchestration and streaming chat for the Outreach B2B platform:

- transport: bounded-retry HTTP execution
- workflows: workflow dispatch and result convergence
- llms: task-routed chat completions, one-shot and streamed
- speech: speech-to-text recording
- uploads: file upload pipeline
- store: durable record store adapters

Components are built explicitly (see outreach_core.factory); the package
holds no global instances.
"""

__version__ = "0.1.0"
