def _mask_part(value: str) -> str:
    visible = 2 if len(value) > 2 else 1
    return value[:visible] + "*****"


def mask_email(email: str) -> str:
    """alice@example.com -> al*****@ex*****.com"""
    if not email or "@" not in email:
        return _mask_part(email or "")

    local, domain = email.rsplit("@", 1)
    dot = domain.rfind(".")
    if dot <= 0:
        name, tld = domain, ""
    else:
        name, tld = domain[:dot], domain[dot:]
    return f"{_mask_part(local)}@{_mask_part(name)}{tld}"
