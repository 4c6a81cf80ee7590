from __future__ import annotations

import unittest

from application.category_directory import CategoryDirectory
from application.errors import CategoryHierarchyError
from domain.models import Category


class CategoryDirectoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.directory = CategoryDirectory(
            [
                Category(id="food", name="Food"),
                Category(id="groceries", name="Groceries", parent_id="food"),
                Category(id="restaurants", name="Restaurants", parent_id="food"),
                Category(id="rent", name="Rent"),
            ]
        )

    def test_lookup_by_id(self) -> None:
        self.assertEqual(self.directory.get("rent").name, "Rent")
        self.assertIsNone(self.directory.get("missing"))
        self.assertIsNone(self.directory.get(None))
        self.assertIn("food", self.directory)
        self.assertEqual(len(self.directory), 4)

    def test_children_of_parent(self) -> None:
        children = self.directory.children_of("food")
        self.assertEqual([c.id for c in children], ["groceries", "restaurants"])
        self.assertEqual(self.directory.children_of("rent"), [])

    def test_roots_and_parent_resolution(self) -> None:
        self.assertEqual([c.id for c in self.directory.roots()], ["food", "rent"])
        self.assertEqual(self.directory.parent_of("groceries").id, "food")
        self.assertIsNone(self.directory.parent_of("food"))
        self.assertEqual(self.directory.root_id_of("restaurants"), "food")
        self.assertEqual(self.directory.root_id_of("rent"), "rent")

    def test_unresolved_parent_is_treated_as_root(self) -> None:
        directory = CategoryDirectory([Category(id="orphan", name="Orphan", parent_id="deleted")])

        self.assertIsNone(directory.parent_of("orphan"))
        self.assertEqual([c.id for c in directory.roots()], ["orphan"])

    def test_rejects_second_level_nesting(self) -> None:
        with self.assertRaises(CategoryHierarchyError):
            CategoryDirectory(
                [
                    Category(id="a", name="A"),
                    Category(id="b", name="B", parent_id="a"),
                    Category(id="c", name="C", parent_id="b"),
                ]
            )

    def test_rejects_self_parent(self) -> None:
        with self.assertRaises(CategoryHierarchyError):
            CategoryDirectory([Category(id="loop", name="Loop", parent_id="loop")])

    def test_duplicate_ids_keep_first_row(self) -> None:
        directory = CategoryDirectory([Category(id="x", name="First"), Category(id="x", name="Second")])
        self.assertEqual(directory.get("x").name, "First")
        self.assertEqual(len(directory), 1)


if __name__ == "__main__":
    unittest.main()
