import pytest

from ledgerorm import AssociationKind, IdGeneration, MappingError, MetadataRegistry
from ledgerorm.mapping import UuidType

from tests.support.models import Category, Tag, Task, Unmapped, build_registry


class Author:
    def __init__(self, name):
        self.id = None
        self.name = name


class Book:
    def __init__(self, title, author=None):
        self.id = None
        self.title = title
        self.author = author
        self.genres = []


class Genre:
    pass


class SpecialCategory(Category):
    pass


def test_string_targets_resolve_when_registered_later():
    registry = MetadataRegistry()
    registry.entity(Book).field("title", "string").many_to_one("author", "Author")

    with pytest.raises(MappingError):
        registry.metadata_for(Book)

    registry.entity(Author).field("name", "string")
    association = registry.metadata_for(Book).associations["author"]
    assert association.target is Author
    assert association.join_column == "author_id"


def test_defaults_derived_from_class_names():
    registry = MetadataRegistry()
    registry.entity(Book).many_to_many("genres", Genre)
    registry.entity(Genre)

    metadata = registry.metadata_for(Book)
    join_table = metadata.associations["genres"].join_table
    assert metadata.table == "book"
    assert metadata.identifier.generation is IdGeneration.IDENTITY
    assert (join_table.name, join_table.join_column, join_table.inverse_join_column) == (
        "book_genre",
        "book_id",
        "genre_id",
    )


def test_duplicate_field_rejected():
    registry = MetadataRegistry()
    mapper = registry.entity(Author).field("name", "string")
    with pytest.raises(MappingError):
        mapper.field("name", "text")


def test_unregistered_type_raises():
    with pytest.raises(MappingError):
        build_registry().metadata_for(Unmapped)


def test_subclass_uses_parent_mapping():
    registry = build_registry()
    assert registry.is_registered(SpecialCategory)
    assert registry.metadata_for(SpecialCategory).table == "categories"


def test_association_sides():
    registry = build_registry()
    tasks = registry.metadata_for(Category).associations["tasks"]
    category = registry.metadata_for(Task).associations["category"]
    tags = registry.metadata_for(Task).associations["tags"]

    assert tasks.kind is AssociationKind.ONE_TO_MANY
    assert not tasks.owning_side and tasks.to_many
    assert category.writes_foreign_key
    assert tags.owning_side and not tags.writes_foreign_key
    assert tags.join_table.name == "task_tags"


def test_uuid_generation_defaults_to_uuid_type():
    assert isinstance(build_registry().identifier_field(Tag).type, UuidType)


def test_provider_accessors():
    registry = build_registry()
    task = Task("Write tests")

    registry.set_field_value(task, "title", "Review")
    assert registry.get_field_value(task, "title") == "Review"
    assert [mapping.name for mapping in registry.field_mappings(Task)] == ["title", "done"]
    assert [assoc.field_name for assoc in registry.association_mappings(Task)] == ["category", "assignee", "tags"]
    with pytest.raises(MappingError):
        registry.get_field_value(task, "missing")


def test_new_instance_skips_init_unless_factory_given():
    registry = MetadataRegistry()
    registry.entity(Author)
    blank = registry.new_instance(Author)
    assert isinstance(blank, Author)
    assert not hasattr(blank, "name")

    registry.entity(Author, factory=lambda: Author("Anonymous"))
    assert registry.new_instance(Author).name == "Anonymous"


def test_custom_accessors_are_used():
    class Boxed:
        def __init__(self):
            self.values = {"id": None, "label": "x"}

    registry = MetadataRegistry()
    registry.entity(Boxed).identifier(
        "id", getter=lambda e: e.values["id"], setter=lambda e, v: e.values.__setitem__("id", v)
    ).field("label", "string", getter=lambda e: e.values["label"])

    boxed = Boxed()
    metadata = registry.metadata_for(Boxed)
    metadata.set_identifier(boxed, 5)
    assert boxed.values["id"] == 5
    assert registry.get_field_value(boxed, "label") == "x"
