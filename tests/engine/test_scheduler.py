"""
Time-Preference Scheduler and Engine Assembly Tests
"""

import asyncio
import dataclasses
from unittest.mock import MagicMock, patch

from core.controller import ControllerPhase
from core.engine import PreferenceEngine
from core.scheduler import TimePreferenceScheduler
from core.schemas.inputs import TimePreference, TimePreferenceUpdate
from conftest import run, settle


def working_hours_rule(preference="Gaming"):
    return TimePreference(preference=preference, days=[3], start_hour=9, end_hour=17)


class TestTimePreferenceScheduler:

    def test_no_change_no_callback(self, store):
        on_change = MagicMock()
        scheduler = TimePreferenceScheduler(store, on_change)

        assert scheduler.check_now() is None
        on_change.assert_not_called()

    def test_rule_becoming_active(self, store):
        on_change = MagicMock()
        scheduler = TimePreferenceScheduler(store, on_change)
        saved = store.save_time_preference(working_hours_rule())

        scheduler.check_now()
        scheduler.check_now()

        on_change.assert_called_once()
        assert on_change.call_args.args[0].id == saved.id

    def test_edit_and_removal_detected(self, store):
        on_change = MagicMock()
        scheduler = TimePreferenceScheduler(store, on_change)
        saved = store.save_time_preference(working_hours_rule())
        scheduler.check_now()

        store.update_time_preference(saved.id, TimePreferenceUpdate(preference="Music"))
        scheduler.check_now()
        store.delete_time_preference(saved.id)
        scheduler.check_now()

        assert [c.args[0] and c.args[0].preference for c in on_change.call_args_list] == [
            "Gaming", "Music", None,
        ]

    def test_periodic_check(self, store):
        on_change = MagicMock()
        scheduler = TimePreferenceScheduler(store, on_change, interval_seconds=0.01)

        async def scenario():
            scheduler.start()
            store.save_time_preference(working_hours_rule())
            await asyncio.sleep(0.05)
            await scheduler.stop()

        run(scenario())

        on_change.assert_called_once()

    def test_errors_do_not_stop_the_loop(self, store):
        scheduler = TimePreferenceScheduler(store, MagicMock(), interval_seconds=0.01)

        async def scenario():
            scheduler.start()
            with patch.object(store, "get_active_time_scoped_preference", side_effect=RuntimeError("boom")):
                await asyncio.sleep(0.05)
            alive = not scheduler._task.done()
            await scheduler.stop()
            return alive

        assert run(scenario())

    def test_stop_without_start(self, store):
        run(TimePreferenceScheduler(store, MagicMock()).stop())


class TestPreferenceEngine:

    def test_start_applies_and_stop_shuts_down(self, page, store, analytics, config):
        engine = PreferenceEngine.create(page, store, analytics, config)
        page.insert_candidates(["All", "Gaming", "Music"])
        store.set_global_preference("Music")

        async def scenario():
            engine.start()
            await engine.observer.drain()
            await engine.stop()

        run(scenario())

        assert page.selected == "Music"
        assert not engine.observer.running
        assert engine.controller.phase == ControllerPhase.STOPPED

    def test_scheduler_wired_at_creation(self, page, store, analytics, config):
        config = dataclasses.replace(config, cooldown_seconds=0.0)
        engine = PreferenceEngine.create(page, store, analytics, config)
        page.insert_candidates(["All", "Gaming", "Music"])
        observed = {}

        assert isinstance(engine.scheduler, TimePreferenceScheduler)

        async def scenario():
            engine.start()
            await engine.observer.drain()
            await settle()

            engine.scheduler.on_change(None)
            observed["visible"] = page.visible
            observed["applied"] = engine.controller.state.has_applied_this_page
            await engine.observer.drain()
            await engine.stop()

        run(scenario())

        assert observed == {"visible": False, "applied": False}
        assert engine.controller.state.has_applied_this_page

    def test_active_rule_change_reapplies(self, page, store, analytics, config):
        config = dataclasses.replace(config, cooldown_seconds=0.0)
        engine = PreferenceEngine.create(page, store, analytics, config)
        page.insert_candidates(["All", "Gaming", "Music"])
        store.set_global_preference("Music")
        observed = {}

        async def scenario():
            engine.start()
            await engine.observer.drain()
            await settle()
            observed["before"] = page.selected

            store.save_time_preference(working_hours_rule("Gaming"))
            engine.scheduler.check_now()
            await engine.observer.drain()
            await engine.stop()

        run(scenario())

        assert observed["before"] == "Music"
        assert page.selected == "Gaming"
        assert page.selection_actions == 2
