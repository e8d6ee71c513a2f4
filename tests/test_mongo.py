# tests/test_mongo.py
"""Tests for MongoDB update documents and join-like aggregation stages."""

import pytest

import prax.mongo
from prax.mongo.lookup import GraphLookup, Lookup, UnionWith, graph_lookup, lookup, lookup_pipeline
from prax.mongo.update import ArrayOp, UpdateBuilder, UpdateOp, merge_update_documents
from prax.utils.exceptions import InvalidInputError


class TestUpdateOp:
    """Field update operator tests."""

    def test_scalar_operators(self):
        assert UpdateOp.set("name", "a").to_document() == {"$set": {"name": "a"}}
        assert UpdateOp.unset("tmp").to_document() == {"$unset": {"tmp": ""}}
        assert UpdateOp.inc("views").to_document() == {"$inc": {"views": 1}}
        assert UpdateOp.current_date("seen_at").to_document() == {"$currentDate": {"seen_at": True}}
        assert UpdateOp.rename("old", "new").to_document() == {"$rename": {"old": "new"}}


class TestArrayOp:
    """Array update operator tests."""

    def test_push(self):
        assert ArrayOp.push("tags", "x").to_document() == {"$push": {"tags": "x"}}

    def test_push_with_position(self):
        assert ArrayOp.push("tags", "x", position=0).to_document() == {
            "$push": {"tags": {"$each": ["x"], "$position": 0}}
        }

    def test_each_modifiers(self):
        assert ArrayOp.push_all("tags", ("a", "b")).to_document() == {"$push": {"tags": {"$each": ["a", "b"]}}}
        assert ArrayOp.add_to_set_all("tags", ["a"]).to_document() == {"$addToSet": {"tags": {"$each": ["a"]}}}

    def test_pop(self):
        assert ArrayOp.pop("queue").to_document() == {"$pop": {"queue": 1}}
        assert ArrayOp.pop("queue", first=True).to_document() == {"$pop": {"queue": -1}}

    def test_pull_all(self):
        assert ArrayOp.pull_all("tags", {"a"}).to_document() == {"$pullAll": {"tags": ["a"]}}


class TestUpdateBuilder:
    """Merged update document tests."""

    def test_operators_merge(self):
        update = (
            UpdateBuilder()
            .set("name", "a")
            .inc("views")
            .set("email", "a@x.io")
            .push("tags", "new")
            .build()
        )
        assert update == {
            "$set": {"name": "a", "email": "a@x.io"},
            "$inc": {"views": 1},
            "$push": {"tags": "new"},
        }

    def test_later_assignment_wins(self):
        assert merge_update_documents([{"$set": {"a": 1}}, {"$set": {"a": 2}}]) == {"$set": {"a": 2}}

    def test_empty(self):
        assert UpdateBuilder().build() == {}


class TestLookup:
    """$lookup stage tests."""

    def test_simple(self):
        assert lookup("orders", "_id", "user_id", "orders") == {
            "$lookup": {"from": "orders", "localField": "_id", "foreignField": "user_id", "as": "orders"}
        }

    def test_pipeline_lookup(self):
        stage = (
            lookup_pipeline("orders", "recent_orders")
            .let_var("uid", "_id")
            .match_expr({"$eq": ["$user_id", "$$uid"]})
            .sort({"created_at": -1})
            .limit(5)
            .project({"total": 1})
            .build()
            .to_stage()
        )
        assert stage == {
            "$lookup": {
                "from": "orders",
                "as": "recent_orders",
                "pipeline": [
                    {"$match": {"$expr": {"$eq": ["$user_id", "$$uid"]}}},
                    {"$sort": {"created_at": -1}},
                    {"$limit": 5},
                    {"$project": {"total": 1}},
                ],
                "let": {"uid": "$_id"},
            }
        }

    def test_with_pipeline_builder(self):
        lookup_def = Lookup.with_pipeline("orders", "o").stage({"$match": {"paid": True}}).build()
        assert isinstance(lookup_def, Lookup)
        assert "localField" not in lookup_def.to_stage()["$lookup"]


class TestGraphLookup:
    """$graphLookup stage tests."""

    def test_stage(self):
        assert graph_lookup("employees", "manager_id", "manager_id", "_id", "chain", max_depth=3) == {
            "$graphLookup": {
                "from": "employees",
                "startWith": "$manager_id",
                "connectFromField": "manager_id",
                "connectToField": "_id",
                "as": "chain",
                "maxDepth": 3,
            }
        }

    def test_optional_fields(self):
        stage = GraphLookup(
            "employees", "manager_id", "manager_id", "_id", "chain",
            depth_field="level", restrict_search_with_match={"active": True},
        ).to_stage()["$graphLookup"]
        assert stage["depthField"] == "level"
        assert stage["restrictSearchWithMatch"] == {"active": True}
        assert "maxDepth" not in stage

    def test_negative_depth(self):
        with pytest.raises(InvalidInputError) as exc:
            GraphLookup("e", "a", "b", "c", "d", max_depth=-1)
        assert exc.value.field == "max_depth"


class TestUnionWith:
    """$unionWith stage tests."""

    def test_bare_collection(self):
        assert UnionWith("archive").to_stage() == {"$unionWith": "archive"}

    def test_with_pipeline(self):
        stage = UnionWith("archive", ({"$match": {"year": 2023}},)).to_stage()
        assert stage == {"$unionWith": {"coll": "archive", "pipeline": [{"$match": {"year": 2023}}]}}


class TestPackageExports:
    """Public names of prax.mongo."""

    def test_all_names_resolve(self):
        for name in prax.mongo.__all__:
            assert hasattr(prax.mongo, name), name
