"""
Role-based module visibility.

Two policies exist side by side:

* the learner dashboard rules (`filter_modules_for_dashboard`), fixed per role name and
  naming a handful of designated modules directly;
* the admin audit rules (`filter_modules_by_allowed_roles`), driven by each module's
  configured `allowedRoles`, with a clinical-role fallback for unconfigured modules.

They do not agree for every role/module pair. `find_policy_disagreements` reports the
modules on which they differ so the gap can be reviewed instead of guessed at.
Every function here is pure and returns a subset of its input, in input order.
"""

import logging
import typing

from hospital_training.catalog.modules import (
    HAND_HYGIENE_MODULE_ID,
    INFECTION_CONTROL_SECTION,
    IPSG_MODULE_ID,
    PATIENTS_RIGHTS_MODULE_ID,
    RISK_MANAGEMENT_MODULE_ID,
)
from hospital_training.models.module_models import ModuleModel, RoleAccessUpdateModel
from hospital_training.models.user_models import USER_ROLES
from hospital_training.utils.base_types import ModuleId

_LOGGER = logging.getLogger(__name__)

ADMIN_ROLE = "QA Admin"

FULL_ACCESS_ROLES = frozenset({"QA Admin", "Head / Assistant Head"})

# Roles that see modules without an explicit allow-list
CLINICAL_FALLBACK_ROLES = frozenset(
    {
        "Doctor",
        "Nurse",
        "Nurse (High-risk Area)",
        "Other Clinical (Med Tech, Rad Tech, etc)",
    }
)

_CLINICAL_DASHBOARD_ROLES = frozenset({"Doctor", "Nurse", "Specialized Nurse"})
_NON_CLINICAL_DASHBOARD_ROLES = frozenset({"Non-clinical", "Others"})
_INTERN_ROLE = "Medical Intern"


def _is_visible_on_dashboard(role: str, module: ModuleModel) -> bool:
    if role == ADMIN_ROLE:
        return True
    if role in _CLINICAL_DASHBOARD_ROLES:
        return module.id != RISK_MANAGEMENT_MODULE_ID
    if role in _NON_CLINICAL_DASHBOARD_ROLES:
        return module.id in (PATIENTS_RIGHTS_MODULE_ID, HAND_HYGIENE_MODULE_ID)
    if role == _INTERN_ROLE:
        return (
            module.id == PATIENTS_RIGHTS_MODULE_ID
            or module.section == INFECTION_CONTROL_SECTION
            or module.id == IPSG_MODULE_ID
        )
    return False


def filter_modules_for_dashboard(
    role: typing.Optional[str],
    modules: typing.Optional[list[ModuleModel]],
) -> list[ModuleModel]:
    """Learner dashboard visibility. Unknown, empty or missing roles see nothing."""
    if not role or not modules:
        return []
    return [module for module in modules if _is_visible_on_dashboard(role, module)]


def filter_modules_by_allowed_roles(
    role: typing.Optional[str],
    modules: typing.Optional[list[ModuleModel]],
) -> list[ModuleModel]:
    """
    Admin audit visibility.

    Full-access roles see every module. Otherwise a module with a non-empty `allowedRoles`
    list is visible iff the role is in it; a module without one is visible to the
    clinical fallback roles only.
    """
    if not modules:
        return []
    if role in FULL_ACCESS_ROLES:
        return list(modules)

    visible = []
    for module in modules:
        if module.allowedRoles:
            if role in module.allowedRoles:
                visible.append(module)
        elif role in CLINICAL_FALLBACK_ROLES:
            visible.append(module)
    return visible


def find_policy_disagreements(
    role: typing.Optional[str],
    modules: typing.Optional[list[ModuleModel]],
) -> list[ModuleId]:
    """Ids of modules that exactly one of the two policies shows to `role`."""
    dashboard_ids = {module.id for module in filter_modules_for_dashboard(role, modules)}
    audit_ids = {module.id for module in filter_modules_by_allowed_roles(role, modules)}
    disagreements = [module.id for module in modules or [] if (module.id in dashboard_ids) != (module.id in audit_ids)]
    if disagreements:
        _LOGGER.info(f"Role '{role}' visibility differs between policies for {len(disagreements)} modules.")
    return disagreements


def get_effective_dashboard_role(
    user_role: typing.Optional[str],
    preview_role: typing.Optional[str] = None,
) -> typing.Optional[str]:
    """
    A QA Admin may preview the dashboard as another role; everyone else always sees
    their own. "All" (or nothing) means no preview.
    """
    if user_role == ADMIN_ROLE and preview_role and preview_role != "All":
        return preview_role
    return user_role


def group_modules_by_section(modules: list[ModuleModel]) -> dict[str, list[ModuleModel]]:
    """Dashboard grouping: sections sorted by label, modules kept in catalog order within each."""
    grouped: dict[str, list[ModuleModel]] = {}
    for module in modules:
        grouped.setdefault(module.section, []).append(module)
    return {section: grouped[section] for section in sorted(grouped)}


def apply_role_access(modules: list[ModuleModel], update: RoleAccessUpdateModel) -> list[ModuleModel]:
    """
    Copies of the modules named in `update` with their new `allowedRoles`. Modules in
    `selectAll` get every role, overriding any explicit list for the same module.

    :raises ValueError: if `update` names a module that is not in `modules`
    """
    by_id = {module.id: module for module in modules}
    requested = {**update.allowedRoles, **{module_id: list(USER_ROLES) for module_id in update.selectAll}}

    unknown = sorted(module_id for module_id in requested if module_id not in by_id)
    if unknown:
        raise ValueError(f"Unknown module ids: {', '.join(unknown)}")

    return [
        by_id[module_id].model_copy(update={"allowedRoles": list(dict.fromkeys(roles))})
        for module_id, roles in requested.items()
    ]
