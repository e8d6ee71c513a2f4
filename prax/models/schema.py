# prax/models/schema.py
"""Root schema container."""

from typing import Optional

from pydantic import BaseModel, Field

from prax.models.common import Span
from prax.models.datasource import Datasource, Generator, PostgresExtension, RawSql
from prax.models.field import Relation
from prax.models.model import CompositeType, EnumDef, Model, View
from prax.models.policy import Policy
from prax.models.server_group import ServerGroup


class DuplicateDefinition(BaseModel):
    """A definition dropped because its name was already taken."""

    kind: str
    name: str
    span: Span = Span()


class SchemaStats(BaseModel):
    """Counts of the entities in a schema."""

    model_count: int = 0
    enum_count: int = 0
    type_count: int = 0
    view_count: int = 0
    policy_count: int = 0
    server_group_count: int = 0
    field_count: int = 0
    relation_count: int = 0


class Schema(BaseModel):
    """A parsed ``.prax`` schema.

    Mappings keep insertion order. When a name is defined twice the first
    definition wins and the later one is recorded in ``duplicates``.
    """

    models: dict[str, Model] = Field(default_factory=dict)
    enums: dict[str, EnumDef] = Field(default_factory=dict)
    composite_types: dict[str, CompositeType] = Field(default_factory=dict)
    views: dict[str, View] = Field(default_factory=dict)
    policies: list[Policy] = Field(default_factory=list)
    server_groups: dict[str, ServerGroup] = Field(default_factory=dict)
    datasource: Optional[Datasource] = None
    generators: dict[str, Generator] = Field(default_factory=dict)
    raw_sql: dict[str, RawSql] = Field(default_factory=dict)
    duplicates: list[DuplicateDefinition] = Field(default_factory=list)

    def _insert(self, mapping: dict, kind: str, item) -> None:
        if item.name in mapping:
            self.duplicates.append(DuplicateDefinition(kind=kind, name=item.name, span=item.span))
            return
        mapping[item.name] = item

    def add_model(self, model: Model) -> None:
        self._insert(self.models, "model", model)

    def add_enum(self, enum: EnumDef) -> None:
        self._insert(self.enums, "enum", enum)

    def add_type(self, composite: CompositeType) -> None:
        self._insert(self.composite_types, "type", composite)

    def add_view(self, view: View) -> None:
        self._insert(self.views, "view", view)

    def add_server_group(self, group: ServerGroup) -> None:
        self._insert(self.server_groups, "serverGroup", group)

    def add_generator(self, generator: Generator) -> None:
        self._insert(self.generators, "generator", generator)

    def add_raw_sql(self, raw: RawSql) -> None:
        self._insert(self.raw_sql, "rawSql", raw)

    def add_policy(self, policy: Policy) -> None:
        if self.get_policy(policy.name) is not None:
            self.duplicates.append(DuplicateDefinition(kind="policy", name=policy.name, span=policy.span))
            return
        self.policies.append(policy)

    def set_datasource(self, datasource: Datasource) -> None:
        if self.datasource is not None:
            self.duplicates.append(
                DuplicateDefinition(kind="datasource", name=datasource.name, span=datasource.span)
            )
            return
        self.datasource = datasource

    def get_model(self, name: str) -> Optional[Model]:
        return self.models.get(name)

    def get_enum(self, name: str) -> Optional[EnumDef]:
        return self.enums.get(name)

    def get_type(self, name: str) -> Optional[CompositeType]:
        return self.composite_types.get(name)

    def get_view(self, name: str) -> Optional[View]:
        return self.views.get(name)

    def get_server_group(self, name: str) -> Optional[ServerGroup]:
        return self.server_groups.get(name)

    def get_policy(self, name: str) -> Optional[Policy]:
        for policy in self.policies:
            if policy.name == name:
                return policy
        return None

    def type_exists(self, name: str) -> bool:
        return (
            name in self.models
            or name in self.enums
            or name in self.composite_types
            or name in self.views
        )

    def model_names(self) -> list[str]:
        return list(self.models)

    def enum_names(self) -> list[str]:
        return list(self.enums)

    def server_group_names(self) -> list[str]:
        return list(self.server_groups)

    def relations(self) -> list[Relation]:
        """Every ``@relation`` declared in the schema, in declaration order."""
        result = []
        for model in self.models.values():
            for field in model.fields.values():
                relation = field.relation(model.name)
                if relation is not None:
                    result.append(relation)
        return result

    def relations_for(self, model: str) -> list[Relation]:
        """Relations that point at ``model``."""
        return [r for r in self.relations() if r.target == model]

    def relations_from(self, model: str) -> list[Relation]:
        """Relations declared on ``model``."""
        return [r for r in self.relations() if r.model == model]

    def policies_for(self, model: str) -> list[Policy]:
        return [p for p in self.policies if p.table.name == model]

    def has_vector_support(self) -> bool:
        return self.datasource is not None and self.datasource.has_vector_support()

    def required_extensions(self) -> list[PostgresExtension]:
        return list(self.datasource.extensions) if self.datasource else []

    def merge(self, other: "Schema") -> None:
        """Add every definition of ``other``; later names overwrite earlier ones."""
        self.models.update(other.models)
        self.enums.update(other.enums)
        self.composite_types.update(other.composite_types)
        self.views.update(other.views)
        self.server_groups.update(other.server_groups)
        self.generators.update(other.generators)
        self.raw_sql.update(other.raw_sql)
        for policy in other.policies:
            self.policies = [p for p in self.policies if p.name != policy.name]
            self.policies.append(policy)
        if other.datasource is not None:
            self.datasource = other.datasource

    def stats(self) -> SchemaStats:
        return SchemaStats(
            model_count=len(self.models),
            enum_count=len(self.enums),
            type_count=len(self.composite_types),
            view_count=len(self.views),
            policy_count=len(self.policies),
            server_group_count=len(self.server_groups),
            field_count=sum(len(m.fields) for m in self.models.values()),
            relation_count=len(self.relations()),
        )

    def __str__(self) -> str:
        stats = self.stats()
        return (
            f"Schema({stats.model_count} models, {stats.enum_count} enums, "
            f"{stats.type_count} types, {stats.view_count} views, "
            f"{stats.policy_count} policies, {stats.server_group_count} server groups)"
        )
