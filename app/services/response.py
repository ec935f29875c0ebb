class ListResponseMixin:
    @classmethod
    def list_response(cls, db, *args, **kwargs) -> dict:
        limit = kwargs.get("limit", args[-2] if len(args) >= 2 else None)
        offset = kwargs.get("offset", args[-1] if args else None)
        items = cls.list(db, *args, **kwargs)
        return {"items": items, "count": len(items), "limit": limit, "offset": offset}
