from mozaiks_data.store.base import StoreAdapter
from mozaiks_data.store.memory import InMemoryStoreAdapter
from mozaiks_data.store.mongo import MotorStoreAdapter

__all__ = ["StoreAdapter", "InMemoryStoreAdapter", "MotorStoreAdapter"]
