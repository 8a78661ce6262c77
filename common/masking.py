def mask_email(email: str) -> str:
    """Hide most of an address while keeping it recognisable.

    ``john.doe@unsw.edu.au`` becomes ``j******e@u*******.au``: the first and
    last character of the local part, the first character and the last three
    characters of the domain.
    """
    local, _, domain = email.partition("@")
    if len(local) <= 2:
        masked_local = local[:1] + "*"
    else:
        masked_local = local[0] + "*" * (len(local) - 2) + local[-1]
    if len(domain) <= 4:
        masked_domain = domain[:1] + "*" * max(0, len(domain) - 1)
    else:
        masked_domain = domain[0] + "*" * (len(domain) - 4) + domain[-3:]
    return f"{masked_local}@{masked_domain}"
