"""
Permission checking utilities.

Permission format:  "{module}:{action}"
  - Modules : abac, departments
  - Actions : read, manage, *  (wildcard)
  - Wildcard: "*:*"  means ALL modules, ALL actions
"""


def check_permission(
    user_permissions: list[str],
    required: str,
) -> bool:
    """
    Check if the user's permission list satisfies the required permission.

    Supports wildcards:
      - "*:*"     → full access
      - "abac:*"  → all actions on the abac module
      - "abac:read" → exact match
    """
    if not required or ":" not in required:
        return False

    req_module, req_action = required.split(":", 1)

    for perm in user_permissions:
        if ":" not in perm:
            continue
        p_module, p_action = perm.split(":", 1)

        # global wildcard
        if p_module == "*" and p_action == "*":
            return True

        # module wildcard  (e.g. "abac:*")
        if p_module == req_module and p_action == "*":
            return True

        # exact match
        if p_module == req_module and p_action == req_action:
            return True

    return False
