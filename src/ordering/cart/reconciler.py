"""Guest cart reconciliation.

When a shopper signs in, the cart they built as a guest is folded into the
cart stored on their account. Account lines keep their position; a guest
line for a product already in the account cart adds its quantity there, and
any other guest line is appended.
"""


def reconcile(guest_cart, account_cart) -> list[dict]:
    """Merge two carts keyed by product id. Neither input is modified."""
    merged = [dict(line) for line in account_cart or []]
    by_product = {str(line["product_id"]): line for line in merged}

    for line in guest_cart or []:
        product_id = str(line["product_id"])
        existing = by_product.get(product_id)
        if existing is not None:
            existing["quantity"] = int(existing["quantity"]) + int(line["quantity"])
        else:
            copied = dict(line)
            merged.append(copied)
            by_product[product_id] = copied

    return merged
