class WorkflowError(Exception):
    """Base class for lead workflow errors."""


class LeadNotFoundError(WorkflowError):
    def __init__(self, lead_id: str):
        super().__init__(f"Lead not found: {lead_id}")
        self.lead_id = lead_id


class LeadValidationError(WorkflowError):
    """Lead exists but is missing fields the workflow cannot run without."""


class WorkflowAlreadyRunningError(WorkflowError):
    def __init__(self, lead_id: str):
        super().__init__(f"Workflow already running for lead: {lead_id}")
        self.lead_id = lead_id
