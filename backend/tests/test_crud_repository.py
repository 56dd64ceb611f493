from __future__ import annotations

from unittest import TestCase

from _support import memory_session_factory

from beestat.core.errors import BeestatError, MultipleRowsError, NotFoundError
from beestat.db.models import EcobeeThermostat
from beestat.repositories.crud import apply_changes
from beestat.repositories.entities import ecobee_thermostats, thermostat_groups
from beestat.repositories.users import create_anonymous_user


class CrudRepositoryTests(TestCase):
    def setUp(self) -> None:
        self.db = memory_session_factory()()
        self.user_id = create_anonymous_user(self.db).id
        self.other_user_id = create_anonymous_user(self.db).id

    def tearDown(self) -> None:
        self.db.close()

    def _thermostat(self, user_id: int, guid: str, **values) -> EcobeeThermostat:
        return ecobee_thermostats.create(self.db, user_id, {"guid": guid, **values})

    def test_create_forces_acting_user(self) -> None:
        row = ecobee_thermostats.create(self.db, self.user_id, {"guid": "a", "user_id": self.other_user_id})

        self.assertEqual(row.user_id, self.user_id)

    def test_reads_are_scoped_to_user(self) -> None:
        mine = self._thermostat(self.user_id, "a")
        self._thermostat(self.other_user_id, "b")

        rows = ecobee_thermostats.read_id(self.db, self.user_id)

        self.assertEqual(list(rows), [mine.id])

    def test_get_by_id_hides_other_users_rows(self) -> None:
        theirs = self._thermostat(self.other_user_id, "b")

        with self.assertRaises(NotFoundError):
            ecobee_thermostats.get_by_id(self.db, self.user_id, theirs.id)

    def test_filters(self) -> None:
        first = self._thermostat(self.user_id, "a", name="Upstairs")
        second = self._thermostat(self.user_id, "b", name="Downstairs")
        self._thermostat(self.user_id, "c", name=None)

        by_list = ecobee_thermostats.read(self.db, self.user_id, {"guid": ["a", "b"]})
        by_null = ecobee_thermostats.read(self.db, self.user_id, {"name": None})
        by_operator = ecobee_thermostats.read(
            self.db,
            self.user_id,
            {"id": {"operator": "between", "value": [first.id, second.id]}},
        )
        not_equal = ecobee_thermostats.read(
            self.db,
            self.user_id,
            {"name": {"operator": "!=", "value": "Upstairs"}},
        )

        self.assertEqual([row.guid for row in by_list], ["a", "b"])
        self.assertEqual([row.guid for row in by_null], ["c"])
        self.assertEqual([row.guid for row in by_operator], ["a", "b"])
        self.assertEqual([row.guid for row in not_equal], ["b"])

    def test_unknown_attribute_and_operator_are_rejected(self) -> None:
        with self.assertRaises(BeestatError):
            ecobee_thermostats.read(self.db, self.user_id, {"color": "blue"})
        with self.assertRaises(BeestatError):
            ecobee_thermostats.read(self.db, self.user_id, {"id": {"operator": "like", "value": 1}})
        with self.assertRaises(BeestatError):
            ecobee_thermostats.create(self.db, self.user_id, {"guid": "a", "color": "blue"})

    def test_soft_delete_hides_row_unless_requested(self) -> None:
        row = self._thermostat(self.user_id, "a")

        ecobee_thermostats.delete(self.db, self.user_id, row.id)

        self.assertEqual(ecobee_thermostats.read(self.db, self.user_id), [])
        self.assertEqual(
            [found.id for found in ecobee_thermostats.read(self.db, self.user_id, include_deleted=True)],
            [row.id],
        )
        self.assertEqual(
            ecobee_thermostats.get(self.db, self.user_id, {"deleted": True}).id,
            row.id,
        )

    def test_get_with_multiple_rows_raises(self) -> None:
        self._thermostat(self.user_id, "a", name="Upstairs")
        self._thermostat(self.user_id, "b", name="Upstairs")

        with self.assertRaises(MultipleRowsError):
            ecobee_thermostats.get(self.db, self.user_id, {"name": "Upstairs"})
        self.assertIsNone(ecobee_thermostats.get(self.db, self.user_id, {"guid": "missing"}))

    def test_update_requires_id_and_keeps_owner(self) -> None:
        group = thermostat_groups.create(self.db, self.user_id, {})

        with self.assertRaises(NotFoundError):
            thermostat_groups.update(self.db, self.user_id, {"property_age": 5})
        updated = thermostat_groups.update(
            self.db,
            self.user_id,
            {"id": group.id, "property_age": 5, "user_id": self.other_user_id},
        )

        self.assertEqual(updated.property_age, 5)
        self.assertEqual(updated.user_id, self.user_id)

    def test_apply_changes_only_reports_differences(self) -> None:
        row = self._thermostat(self.user_id, "a", name="Main", json_runtime={"actualTemperature": 700})

        unchanged = apply_changes(row, {"name": "Main", "json_runtime": {"actualTemperature": 700}})
        changed = apply_changes(row, {"name": "Upstairs"})

        self.assertFalse(unchanged)
        self.assertTrue(changed)
        self.assertEqual(row.name, "Upstairs")
