from __future__ import annotations

from assistflow.domain.models import Permission

# Capabilities consulted by the workflow and the API guards
ASSISTANCE_CREATE = Permission("assistance", "create")
ASSISTANCE_READ = Permission("assistance", "read")
ASSISTANCE_VERIFY = Permission("assistance", "verify")
ASSISTANCE_VALIDATE_DEC = Permission("assistance", "validate_dec")
ASSISTANCE_VALIDATE_BAO = Permission("assistance", "validate_bao")
ASSISTANCE_ASSIGN = Permission("assistance", "assign")
ASSISTANCE_MANAGE = Permission("assistance", "manage")
ROLE_READ = Permission("role", "read")
ROLE_MANAGE = Permission("role", "manage")
USER_READ = Permission("user", "read")
USER_MANAGE = Permission("user", "manage")
AUDIT_READ = Permission("audit", "read")

PERMISSION_DEFINITIONS = [
    {"module": "assistance", "action": "create", "description": "Create assistance requests"},
    {"module": "assistance", "action": "read", "description": "Read every assistance request"},
    {"module": "assistance", "action": "verify", "description": "Verify submitted requests"},
    {"module": "assistance", "action": "validate_dec", "description": "Hierarchical (DEC) validation"},
    {"module": "assistance", "action": "validate_bao", "description": "Operations (BAO) validation"},
    {"module": "assistance", "action": "assign", "description": "Assign approved requests to a technician"},
    {"module": "assistance", "action": "manage", "description": "Resolve and close on behalf of others"},
    {"module": "role", "action": "read", "description": "Read roles and permissions"},
    {"module": "role", "action": "manage", "description": "Manage roles and permissions"},
    {"module": "user", "action": "read", "description": "Read user accounts"},
    {"module": "user", "action": "manage", "description": "Manage user accounts"},
    {"module": "audit", "action": "read", "description": "Read the audit log"},
]

ROLE_DEFINITIONS = [
    {"name": "SUPERADMIN", "description": "Every permission."},
    {"name": "ADMIN_TECHNIQUE", "description": "Technical administration."},
    {"name": "ADMIN_FONCTIONNEL", "description": "Functional administration and dispatch."},
    {"name": "UTILISATEUR", "description": "Agency staff submitting requests."},
    {"name": "VERIFICATEUR", "description": "Checks submitted requests for completeness."},
    {"name": "DEC", "description": "Hierarchical validator (delegate)."},
    {"name": "BAO", "description": "Operations validator and dispatcher."},
    {"name": "TECHNICIEN", "description": "Resolves assigned requests."},
    {"name": "AUDITEUR", "description": "Read-only compliance access."},
]

_ALL = [f"{p['module']}.{p['action']}" for p in PERMISSION_DEFINITIONS]

ROLE_PERMISSIONS: dict[str, list[str]] = {
    "SUPERADMIN": _ALL,
    "ADMIN_TECHNIQUE": _ALL,
    "ADMIN_FONCTIONNEL": [
        "assistance.read",
        "assistance.assign",
        "assistance.manage",
        "role.read",
        "user.read",
    ],
    "UTILISATEUR": ["assistance.create"],
    "VERIFICATEUR": ["assistance.read", "assistance.verify", "audit.read"],
    "DEC": ["assistance.read", "assistance.validate_dec"],
    "BAO": ["assistance.read", "assistance.validate_bao", "assistance.assign"],
    "TECHNICIEN": ["assistance.read"],
    "AUDITEUR": ["assistance.read", "audit.read"],
}
