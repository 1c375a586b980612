from unittest.mock import Mock

from vorniq.observable import Observable


class TestObservable:
    def test_subscriber_gets_current_value_immediately(self):
        obs = Observable("a")
        seen = []
        obs.subscribe(seen.append)
        assert seen == ["a"]

    def test_publish_notifies_and_skips_equal_values(self):
        obs = Observable(1)
        seen = []
        obs.subscribe(seen.append)
        obs.publish(2)
        obs.publish(2)
        obs.publish(3)
        assert seen == [1, 2, 3]
        assert obs.value == 3

    def test_unsubscribe_stops_notifications(self):
        obs = Observable(0)
        seen = []
        unsubscribe = obs.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        obs.publish(1)
        assert seen == [0]
        assert obs.subscriber_count() == 0

    def test_failing_subscriber_does_not_block_others(self):
        obs = Observable(0)
        broken = Mock(side_effect=[None, RuntimeError("boom")])
        seen = []
        obs.subscribe(broken)
        obs.subscribe(seen.append)
        obs.publish(1)
        assert seen == [0, 1]
        assert obs.value == 1
