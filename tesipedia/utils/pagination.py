def page_params(args, default_limit=20, max_limit=100):
    """Read ``page``/``limit`` from query args, falling back on bad input."""
    try:
        page = int(args.get("page", 1))
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        page, limit = 1, default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def paginate_query(query, page, limit):
    items = query.offset((page - 1) * limit).limit(limit).all()
    total = query.order_by(None).count()
    total_pages = (total + limit - 1) // limit
    return items, {"total": total, "page": page, "limit": limit, "total_pages": total_pages}
