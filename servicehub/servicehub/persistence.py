"""Explicit persistence handle shared by the marketplace managers.

A ``Store`` is bound to one configured database alias. Managers receive it in
their constructor and never touch ``Model.objects`` directly, so the database
they talk to is decided by whoever builds them (views, commands, tests).
"""

from __future__ import annotations

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, transaction


class Store:
    def __init__(self, alias: str = DEFAULT_DB_ALIAS):
        self.alias = alias

    def __repr__(self):
        return f"Store(alias={self.alias!r})"

    def query(self, model):
        """Base queryset for ``model`` on this store's database."""
        return model._default_manager.db_manager(self.alias).all()

    def get(self, model, pk, *, select_related=()):
        qs = self.query(model)
        if select_related:
            qs = qs.select_related(*select_related)
        return qs.filter(pk=pk).first()

    def save(self, obj, *, update_fields=None):
        obj.save(using=self.alias, update_fields=update_fields)
        return obj

    def delete(self, obj):
        obj.delete(using=self.alias)

    def atomic(self):
        return transaction.atomic(using=self.alias)


def build_store() -> Store:
    return Store(getattr(settings, "MARKETPLACE_DB_ALIAS", DEFAULT_DB_ALIAS))
