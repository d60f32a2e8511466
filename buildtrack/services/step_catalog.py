"""
Step catalog: action guidance and short task labels per workflow step.

Keyed by the stable ``step_code`` stored on WorkflowStep, so renaming a
step's display name does not silently drop its guidance text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

GENERIC_GUIDANCE = "Complete this task to proceed with the project"

_LEADING_VERB = re.compile(r"^(Input|Complete|Schedule|Create|Process|Prepare|Verify|Conduct)\s+")


@dataclass(frozen=True)
class CatalogEntry:
    code: str
    phase: str
    name: str
    label: str
    guidance: str


_ENTRIES = (
    # LEAD
    CatalogEntry("lead.customer_info", "LEAD", "Input Customer Information", "Customer info",
                 "Gather and enter customer contact details, project requirements, and preferences"),
    CatalogEntry("lead.questions_checklist", "LEAD", "Complete Questions to Ask Checklist", "Initial questionnaire",
                 "Review and complete the initial customer questionnaire"),
    CatalogEntry("lead.property_info", "LEAD", "Input Lead Property Information", "Property details",
                 "Document property details, measurements, and site conditions"),
    CatalogEntry("lead.assign_pm", "LEAD", "Assign A Project Manager", "PM assignment",
                 "Select and assign the appropriate project manager for this job"),
    CatalogEntry("lead.schedule_inspection", "LEAD", "Schedule Initial Inspection", "Schedule inspection",
                 "Contact customer to schedule the initial site inspection"),
    # PROSPECT
    CatalogEntry("prospect.site_inspection", "PROSPECT", "Site Inspection", "Site inspection",
                 "Conduct thorough site inspection and document findings"),
    CatalogEntry("prospect.write_estimate", "PROSPECT", "Write Estimate", "Create estimate",
                 "Prepare detailed cost estimate based on inspection and requirements"),
    CatalogEntry("prospect.insurance_process", "PROSPECT", "Insurance Process", "Insurance process",
                 "Submit insurance claims and coordinate with adjuster if applicable"),
    CatalogEntry("prospect.agreement_preparation", "PROSPECT", "Agreement Preparation", "Prepare agreement",
                 "Prepare and review contract documents for customer approval"),
    CatalogEntry("prospect.agreement_signing", "PROSPECT", "Agreement Signing", "Contract signing",
                 "Schedule contract signing appointment with customer"),
    # APPROVED
    CatalogEntry("approved.admin_setup", "APPROVED", "Administrative Setup", "Admin setup",
                 "Set up project files, permits, and administrative requirements"),
    CatalogEntry("approved.pre_job_actions", "APPROVED", "Pre-Job Actions", "Permit approval",
                 "Complete all pre-construction activities and permit approvals"),
    CatalogEntry("approved.prepare_production", "APPROVED", "Prepare for Production", "Production prep",
                 "Order materials, schedule crew, and prepare for construction start"),
    CatalogEntry("approved.verify_labor_orders", "APPROVED", "Verify Labor Orders", "Labor scheduling",
                 "Confirm crew scheduling and labor assignments"),
    CatalogEntry("approved.verify_material_orders", "APPROVED", "Verify Material Orders", "Material delivery",
                 "Ensure all materials are ordered and delivery is scheduled"),
    # EXECUTION
    CatalogEntry("execution.installation", "EXECUTION", "Installation Process", "Installation",
                 "Begin construction work according to project specifications"),
    CatalogEntry("execution.quality_check", "EXECUTION", "Quality Check", "Quality inspect",
                 "Perform quality inspection and address any issues"),
    CatalogEntry("execution.daily_progress", "EXECUTION", "Daily Progress Documentation", "Progress update",
                 "Update project progress and document daily activities"),
    CatalogEntry("execution.customer_updates", "EXECUTION", "Customer Updates", "Customer update",
                 "Communicate progress updates to the customer"),
    CatalogEntry("execution.subcontractor_coordination", "EXECUTION", "Subcontractor Coordination", "Crew scheduling",
                 "Coordinate with subcontractors and schedule work"),
    # SECOND_SUPPLEMENT
    CatalogEntry("supplement.create_supplement", "SECOND_SUPPLEMENT", "Create Supplement in Xactimate",
                 "Insurance supplement", "Prepare insurance supplement documentation"),
    CatalogEntry("supplement.insurance_follow_up", "SECOND_SUPPLEMENT", "Insurance Follow-up", "Insurance follow-up",
                 "Follow up with insurance company on claim status"),
    # COMPLETION
    CatalogEntry("completion.final_inspection", "COMPLETION", "Final Inspection", "Final inspection",
                 "Conduct final walkthrough and address any punch list items"),
    CatalogEntry("completion.financial_processing", "COMPLETION", "Financial Processing", "Invoice payment",
                 "Process final invoicing and payment collection"),
    CatalogEntry("completion.ar_follow_up", "COMPLETION", "AR Follow-Up", "Payment follow-up",
                 "Follow up on outstanding payment balances"),
    CatalogEntry("completion.project_closeout", "COMPLETION", "Project Closeout", "Project closeout",
                 "Complete all closeout procedures and documentation"),
    CatalogEntry("completion.warranty_registration", "COMPLETION", "Warranty Registration", "Warranty setup",
                 "Register warranty information and provide to customer"),
)

STEP_CATALOG: dict[str, CatalogEntry] = {e.code: e for e in _ENTRIES}


def lookup(step_code: str | None) -> CatalogEntry | None:
    if not step_code:
        return None
    return STEP_CATALOG.get(step_code)


def guidance_for(step_code: str | None) -> str:
    entry = lookup(step_code)
    return entry.guidance if entry else GENERIC_GUIDANCE


def task_label_for(step_code: str | None, step_name: str) -> str:
    """Short label for UI titles; uncatalogued steps use a trimmed, lower-cased name."""
    entry = lookup(step_code)
    if entry:
        return entry.label
    return _LEADING_VERB.sub("", step_name).lower()
