import unittest

from dist_heartbeat.events import (Broadcast, Connected, Disconnected, Observation, PacketReceived, Send,
                                   PEER_CONNECTED, PEER_DISCONNECTED, PROBABLE_DESYNC)
from dist_heartbeat.monitor import HeartbeatMonitor


def desyncs(actions):
    return [a for a in actions if isinstance(a, Observation) and a.kind == PROBABLE_DESYNC]


def broadcasts(actions):
    return [a for a in actions if isinstance(a, Broadcast)]


class TestConnectionState(unittest.TestCase):

    def setUp(self):
        self.monitor = HeartbeatMonitor(is_initiator=True)

    def test_connect_then_disconnect(self):
        """connected segue o último evento Connected/Disconnected do peer."""
        # 1. Prepara & 2. Age
        actions = self.monitor.on_transport_event(Connected(1), now=0.0)

        # 3. Verifica
        self.assertTrue(self.monitor.is_connected(1))
        self.assertEqual(actions, [Observation(PEER_CONNECTED, 1)])

        actions = self.monitor.on_transport_event(Disconnected(1), now=1.0)
        self.assertFalse(self.monitor.is_connected(1))
        self.assertEqual(actions, [Observation(PEER_DISCONNECTED, 1)])

        self.monitor.on_transport_event(Connected(1), now=2.0)
        self.assertTrue(self.monitor.is_connected(1))

    def test_unknown_peer_defaults_to_disconnected(self):
        self.assertFalse(self.monitor.is_connected("nunca-visto"))

    def test_disconnect_of_unknown_peer_is_not_an_error(self):
        actions = self.monitor.on_transport_event(Disconnected(42), now=0.0)

        self.assertFalse(self.monitor.is_connected(42))
        self.assertEqual(actions, [Observation(PEER_DISCONNECTED, 42)])

    def test_reconnect_resets_timestamps(self):
        self.monitor.on_transport_event(Connected(1), now=0.0)
        self.monitor.tick(0.0)
        self.monitor.on_transport_event(PacketReceived(1, b"PONG @ 0.0"), now=0.2)

        self.monitor.on_transport_event(Disconnected(1), now=1.0)
        self.monitor.on_transport_event(Connected(1), now=3.0)

        session = self.monitor.sessions[1]
        self.assertIsNone(session.last_sent)
        self.assertIsNone(session.last_echoed)
        self.assertEqual(session.connected_at, 3.0)


class TestPingSchedule(unittest.TestCase):

    def setUp(self):
        self.monitor = HeartbeatMonitor(is_initiator=True, ping_interval=1.0)

    def test_first_tick_after_connect_sends_ping(self):
        """O primeiro PING sai no primeiro tick conectado, qualquer que seja 'now'."""
        self.monitor.on_transport_event(Connected(1), now=123.4)

        actions = self.monitor.tick(123.4)

        self.assertEqual(broadcasts(actions), [Broadcast(b"PING")])
        self.assertEqual(self.monitor.sessions[1].last_sent, 123.4)

    def test_no_ping_before_interval(self):
        self.monitor.on_transport_event(Connected(1), now=0.0)

        first = self.monitor.tick(0.0)
        second = self.monitor.tick(0.5)
        third = self.monitor.tick(1.0)

        self.assertEqual(len(broadcasts(first)), 1)
        self.assertEqual(broadcasts(second), [])
        self.assertEqual(len(broadcasts(third)), 1)

    def test_no_ping_while_disconnected(self):
        self.monitor.on_transport_event(Connected(1), now=0.0)
        self.monitor.on_transport_event(Disconnected(1), now=0.1)

        actions = self.monitor.tick(5.0)

        self.assertEqual(broadcasts(actions), [])

    def test_responder_never_pings(self):
        responder = HeartbeatMonitor(is_initiator=False)
        responder.on_transport_event(Connected(1), now=0.0)

        for now in (0.0, 1.0, 2.0, 10.0):
            self.assertEqual(broadcasts(responder.tick(now)), [])

    def test_single_broadcast_for_many_peers(self):
        """Vários peers conectados recebem um único broadcast e o mesmo last_sent."""
        for peer in (1, 2, 3):
            self.monitor.on_transport_event(Connected(peer), now=0.0)

        actions = self.monitor.tick(0.0)

        self.assertEqual(len(broadcasts(actions)), 1)
        self.assertEqual({s.last_sent for s in self.monitor.sessions.values()}, {0.0})


class TestPacketHandling(unittest.TestCase):

    def test_ping_answered_on_both_roles(self):
        for is_initiator in (True, False):
            with self.subTest(is_initiator=is_initiator):
                monitor = HeartbeatMonitor(is_initiator=is_initiator)
                monitor.on_transport_event(Connected("p"), now=0.0)

                actions = monitor.on_transport_event(PacketReceived("p", b"PING"), now=2.5)

                self.assertEqual(actions, [Send("p", b"PONG @ 2.5")])

    def test_pong_sets_arrival_time_on_initiator(self):
        monitor = HeartbeatMonitor(is_initiator=True)
        monitor.on_transport_event(Connected(1), now=0.0)

        actions = monitor.on_transport_event(PacketReceived(1, b"PONG @ 3.2"), now=7.0)

        self.assertEqual(actions, [])
        self.assertEqual(monitor.sessions[1].last_echoed, 7.0)

    def test_pong_ignored_on_responder(self):
        monitor = HeartbeatMonitor(is_initiator=False)
        monitor.on_transport_event(Connected(1), now=0.0)

        monitor.on_transport_event(PacketReceived(1, b"PONG @ 3.2"), now=7.0)

        self.assertIsNone(monitor.sessions[1].last_echoed)

    def test_unknown_and_malformed_payloads_are_ignored(self):
        monitor = HeartbeatMonitor(is_initiator=True)
        monitor.on_transport_event(Connected(1), now=0.0)

        for data in (b"HELLO", b"", b"\xff\xfe\x00", b"PING ", b"ping"):
            with self.subTest(data=data):
                self.assertEqual(monitor.on_transport_event(PacketReceived(1, data), now=1.0), [])

    def test_ping_with_invalid_bytes_after_is_not_a_ping(self):
        monitor = HeartbeatMonitor(is_initiator=False)

        actions = monitor.on_transport_event(PacketReceived(1, b"PING\xff"), now=1.0)

        self.assertEqual(actions, [])


class TestDesync(unittest.TestCase):

    def _monitor_with(self, last_sent, last_echoed, is_initiator=True):
        monitor = HeartbeatMonitor(is_initiator=is_initiator, desync_threshold=5.0)
        monitor.on_transport_event(Connected(1), now=0.0)
        session = monitor.sessions[1]
        session.last_sent = last_sent
        session.last_echoed = last_echoed
        return monitor

    def test_gap_above_threshold_fires(self):
        monitor = self._monitor_with(last_sent=10.0, last_echoed=4.0)

        actions = monitor.tick(10.5)

        self.assertEqual(len(desyncs(actions)), 1)
        self.assertEqual(desyncs(actions)[0].peer_id, 1)

    def test_gap_below_threshold_does_not_fire(self):
        monitor = self._monitor_with(last_sent=10.0, last_echoed=5.1)

        self.assertEqual(desyncs(monitor.tick(10.5)), [])

    def test_desync_is_level_triggered(self):
        """Dispara em todo tick enquanto a condição vale, sem alterar a sessão."""
        monitor = self._monitor_with(last_sent=10.0, last_echoed=4.0, is_initiator=False)

        for now in (10.1, 10.2, 10.3):
            self.assertEqual(len(desyncs(monitor.tick(now))), 1)
        self.assertEqual(monitor.sessions[1].last_sent, 10.0)
        self.assertEqual(monitor.sessions[1].last_echoed, 4.0)
        self.assertTrue(monitor.sessions[1].connected)

    def test_disconnect_clears_stale_desync(self):
        """Uma sessão que caiu em desync para de disparar depois do Disconnect."""
        monitor = self._monitor_with(last_sent=10.0, last_echoed=4.0)
        self.assertEqual(len(desyncs(monitor.tick(10.1))), 1)

        monitor.on_transport_event(Disconnected(1), now=10.2)

        self.assertEqual(desyncs(monitor.tick(10.3)), [])
        self.assertIsNone(monitor.sessions[1].last_sent)
        self.assertIsNone(monitor.sessions[1].last_echoed)

    def test_reconnect_after_stale_session(self):
        """Peer antigo em desync cai, um novo peer conecta e responde: nenhum desync depois."""
        # 1. Prepara: peer 1 nunca responde até passar do limite
        monitor = HeartbeatMonitor(is_initiator=True, ping_interval=1.0, desync_threshold=5.0)
        monitor.on_transport_event(Connected(1), now=0.0)
        for now in range(8):
            monitor.tick(float(now))
        self.assertEqual(len(desyncs(monitor.tick(7.0))), 1)

        # 2. Age: o link cai e volta como outro peer, que responde ao PING
        monitor.on_transport_event(Disconnected(1), now=7.5)
        monitor.on_transport_event(Connected(2), now=8.0)
        monitor.tick(8.0)
        monitor.on_transport_event(PacketReceived(2, b"PONG @ 8.0"), now=8.1)

        # 3. Verifica
        self.assertEqual(desyncs(monitor.tick(12.0)), [])

    def test_reconnect_with_same_peer_id_starts_fresh(self):
        monitor = HeartbeatMonitor(is_initiator=True, ping_interval=1.0, desync_threshold=5.0)
        monitor.on_transport_event(Connected(1), now=0.0)
        for now in range(8):
            monitor.tick(float(now))

        monitor.on_transport_event(Disconnected(1), now=7.5)
        monitor.on_transport_event(Connected(1), now=8.0)
        actions = monitor.tick(8.0)

        self.assertEqual(broadcasts(actions), [Broadcast(b"PING")])
        self.assertEqual(desyncs(actions), [])
        self.assertEqual(list(monitor.sessions), [1])

    def test_missing_pongs_eventually_flag_desync(self):
        monitor = HeartbeatMonitor(is_initiator=True, ping_interval=1.0, desync_threshold=5.0)
        monitor.on_transport_event(Connected(1), now=0.0)

        fired_at = None
        now = 0.0
        while now <= 8.0:
            if desyncs(monitor.tick(now)):
                fired_at = now
                break
            now = round(now + 0.5, 1)

        self.assertEqual(fired_at, 6.0)

    def test_round_trip_scenario(self):
        """Cliente conecta, envia PING, o servidor responde e não há desync."""
        client = HeartbeatMonitor(is_initiator=True)
        server = HeartbeatMonitor(is_initiator=False)
        client.on_transport_event(Connected("srv"), now=0.0)
        server.on_transport_event(Connected("cli"), now=0.0)

        ping = broadcasts(client.tick(0.0))[0]
        reply = server.on_transport_event(PacketReceived("cli", ping.payload), now=0.0)
        self.assertEqual(reply, [Send("cli", b"PONG @ 0.0")])

        client.on_transport_event(PacketReceived("srv", reply[0].payload), now=0.1)
        self.assertEqual(client.sessions["srv"].last_echoed, 0.1)

        self.assertEqual(desyncs(client.tick(5.0)), [])


if __name__ == '__main__':
    unittest.main()
