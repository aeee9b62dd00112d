import unittest

from mozaiks_data.errors import StoreFailure
from mozaiks_data.store.memory import InMemoryStoreAdapter


class InMemoryStoreAdapterTests(unittest.IsolatedAsyncioTestCase):
    async def test_create_docs_rejects_repeated_id_in_batch(self) -> None:
        store = InMemoryStoreAdapter()

        with self.assertRaises(StoreFailure):
            await store.create_docs("p1_o1_notes", [{"_id": "a", "v": 1}, {"_id": "a", "v": 2}])

        self.assertEqual(store.documents("p1_o1_notes"), [])

    async def test_create_docs_rejects_existing_id(self) -> None:
        store = InMemoryStoreAdapter()
        store.seed("p1_o1_notes", "a", {"v": 0})

        with self.assertRaises(StoreFailure):
            await store.create_docs("p1_o1_notes", [{"_id": "b"}, {"_id": "a", "v": 1}])

        self.assertEqual(store.documents("p1_o1_notes"), [{"_id": "a", "v": 0}])

    async def test_create_docs_counts_inserted_documents(self) -> None:
        store = InMemoryStoreAdapter()

        inserted = await store.create_docs("p1_o1_notes", [{"v": 1}, {"v": 2}, {"_id": "c"}])

        self.assertEqual(inserted, 3)
        self.assertEqual(len(store.documents("p1_o1_notes")), 3)

    async def test_fail_with_is_consumed_by_one_call(self) -> None:
        store = InMemoryStoreAdapter()
        store.fail_with["create_doc"] = StoreFailure("boom")

        with self.assertRaises(StoreFailure):
            await store.create_doc("c", {"v": 1})
        self.assertTrue(await store.create_doc("c", {"v": 2}))
        self.assertEqual([c.operation for c in store.mutations], ["create_doc", "create_doc"])


if __name__ == "__main__":
    unittest.main()
