from be_my_guide.utils.object_ids import is_object_id, new_object_id, to_object_id

__all__ = ["is_object_id", "new_object_id", "to_object_id"]
