import unittest

from wordswap.services.room_store import RoomPhase, RoomStore, normalize_room_code


class RoomStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = RoomStore()

    def test_get_or_create_makes_creator_host(self) -> None:
        session, created = self.store.get_or_create("abc123", "Alice")
        self.assertTrue(created)
        self.assertEqual(session.id, "ABC123")
        self.assertEqual(session.host, "Alice")
        self.assertEqual(session.players, [])
        self.assertEqual(session.phase, RoomPhase.FORMING)

    def test_room_codes_are_case_insensitive(self) -> None:
        first, _ = self.store.get_or_create("abc123", "Alice")
        second, created = self.store.get_or_create(" ABC123 ", "Bob")
        self.assertFalse(created)
        self.assertIs(first, second)
        self.assertEqual(second.host, "Alice")
        self.assertIs(self.store.get("Abc123"), first)

    def test_unknown_room_is_none(self) -> None:
        self.assertIsNone(self.store.get("NOPE"))
        self.assertFalse(self.store.delete("NOPE"))

    def test_delete_removes_room(self) -> None:
        self.store.get_or_create("ROOM1", "Alice")
        self.assertTrue(self.store.delete("room1"))
        self.assertIsNone(self.store.get("ROOM1"))

    def test_room_codes_for_user(self) -> None:
        first, _ = self.store.get_or_create("ROOM1", "Alice")
        second, _ = self.store.get_or_create("ROOM2", "Bob")
        first.players.append("Alice")
        second.players.extend(["Bob", "Alice"])
        self.assertEqual(sorted(self.store.room_codes_for_user("Alice")), ["ROOM1", "ROOM2"])
        self.assertEqual(self.store.room_codes_for_user("Bob"), ["ROOM2"])
        self.assertEqual(self.store.room_codes_for_user("Cara"), [])

    def test_normalize_room_code(self) -> None:
        self.assertEqual(normalize_room_code("  xy12 "), "XY12")
        self.assertEqual(normalize_room_code(None), "")


if __name__ == "__main__":
    unittest.main()
