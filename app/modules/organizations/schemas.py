from app.modules.profiles.schemas import OrganizationSummary


class Organization(OrganizationSummary):
    pass
