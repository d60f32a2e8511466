"""
Alert engine signals (blinker).

Outbound, emitted by the engine for whatever observability layer listens:
    sweep_started(sender, trigger, categories)
    sweep_completed(sender, result)
    sweep_skipped(sender, trigger)
    workflow_checked(sender, result)
    workflow_check_failed(sender, workflow_id, error)

Inbound, emitted by the CRUD layer; the engine subscribes on init:
    step_completed(sender, workflow_id, step_id=None, completed_by=None)
    project_created(sender, project_id)
"""

from blinker import Namespace

_signals = Namespace()

sweep_started = _signals.signal("alert-sweep-started")
sweep_completed = _signals.signal("alert-sweep-completed")
sweep_skipped = _signals.signal("alert-sweep-skipped")
workflow_checked = _signals.signal("alert-workflow-checked")
workflow_check_failed = _signals.signal("alert-workflow-check-failed")

step_completed = _signals.signal("workflow-step-completed")
project_created = _signals.signal("project-created")
