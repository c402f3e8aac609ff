#!/usr/bin/env python3
#
# Guest agent session tests
#
# Copyright (C) 2026 The qemu.qapi authors
#
# This work is licensed under the terms of the GNU LGPL, version 2 or
# later.  See the COPYING file in the top-level directory.

from unittest import mock

from qapi_test import FakePeer, QAPITestCase, SocketPeer

from qemu.qapi import (
    QGA,
    BadReplyError,
    ExecuteError,
    RawCommand,
    Runstate,
    StateError,
    SyncError,
    UnexpectedEOFError,
)
from qemu.qapi.util import nonce


NONCE = 123456


def synced(*replies):
    peer = FakePeer({'return': NONCE}, *replies)
    qga = QGA(peer.stream)
    with mock.patch('qemu.qapi.qga.nonce', return_value=NONCE):
        qga.handshake()
    return peer, qga


class HandshakeTest(QAPITestCase):

    def handshake(self, *replies):
        qga = QGA(FakePeer(*replies).stream)
        with mock.patch('qemu.qapi.qga.nonce', return_value=NONCE):
            qga.handshake()
        return qga

    def test_handshake(self):
        peer = FakePeer({'return': NONCE})
        qga = QGA(peer.stream)
        self.assertEqual(qga.runstate, Runstate.UNSYNCED)

        with mock.patch('qemu.qapi.qga.nonce', return_value=NONCE):
            self.assertEqual(qga.handshake(), NONCE)

        self.assertEqual(qga.runstate, Runstate.SYNCED)
        self.assertSent(peer, ('guest-sync', {'id': NONCE}))

    @staticmethod
    def echo(msg):
        if msg['execute'] == 'guest-sync':
            return [{'return': msg['arguments']['id']}]
        return [{'return': {}}]

    def test_real_nonce_echoed(self):
        peer = SocketPeer(handler=self.echo)
        peer.start()
        try:
            with QGA.from_socket(peer.client, 'guest') as qga:
                value = qga.handshake()
                self.assertEqual(qga.runstate, Runstate.SYNCED)
                self.assertEqual(qga.command('guest-ping'), {})
        finally:
            peer.stop()

        self.assertEqual(peer.received[0],
                         {'execute': 'guest-sync',
                          'arguments': {'id': value}})
        self.assertEqual(peer.received[1], {'execute': 'guest-ping'})

    def test_mismatch(self):
        with self.assertRaises(SyncError) as context:
            self.handshake({'return': NONCE + 1})
        self.assertEqual(context.exception.expected, NONCE)
        self.assertEqual(context.exception.received, NONCE + 1)

    def test_mismatch_breaks_session(self):
        qga = QGA(FakePeer({'return': 0}, {'return': {}}).stream)
        with mock.patch('qemu.qapi.qga.nonce', return_value=NONCE):
            with self.assertRaises(SyncError):
                qga.handshake()
        self.assertEqual(qga.runstate, Runstate.BROKEN)
        with self.assertRaises(StateError):
            qga.execute(RawCommand('guest-ping'))

    def test_wrong_types(self):
        for value in (True, float(NONCE), str(NONCE), None, [NONCE]):
            with self.subTest(value=value):
                with self.assertRaises(SyncError):
                    self.handshake({'return': value})

    def test_remote_error(self):
        qga = QGA(FakePeer({'error': {'class': 'GenericError',
                                      'desc': 'not ready'}}).stream)
        with mock.patch('qemu.qapi.qga.nonce', return_value=NONCE):
            with self.assertRaises(ExecuteError) as context:
                qga.handshake()
        self.assertEqual(context.exception.sent.name, 'guest-sync')
        self.assertEqual(qga.runstate, Runstate.BROKEN)

    def test_eof(self):
        with self.assertRaises(UnexpectedEOFError):
            self.handshake()

    def test_not_a_reply(self):
        with self.assertRaises(BadReplyError):
            self.handshake({'event': 'SHUTDOWN'})

    def test_handshake_twice(self):
        qga = self.handshake({'return': NONCE})
        with self.assertRaises(StateError):
            qga.handshake()

    def test_execute_before_sync(self):
        peer = FakePeer({'return': {}})
        qga = QGA(peer.stream)
        with self.assertRaises(StateError):
            qga.execute(RawCommand('guest-ping'))
        self.assertEqual(peer.raw_sent(), b'')
        self.assertEqual(qga.runstate, Runstate.UNSYNCED)


class SessionTest(QAPITestCase):

    def test_execute(self):
        peer, qga = synced({'return': {'version': '8.1.0'}})
        response = qga.execute(RawCommand('guest-info'))
        self.assertEqual(response.result(), {'version': '8.1.0'})
        self.assertSent(peer,
                        ('guest-sync', {'id': NONCE}),
                        ('guest-info', None))

    def test_remote_error_is_recoverable(self):
        _, qga = synced(
            {'error': {'class': 'CommandNotFound', 'desc': 'no such thing'}},
            {'return': {}},
        )
        response = qga.execute(RawCommand('guest-frobnicate'))
        self.assertTrue(response.is_error)
        self.assertEqual(qga.runstate, Runstate.SYNCED)
        self.assertEqual(qga.command('guest-ping'), {})

    def test_command_arguments(self):
        peer, qga = synced({'return': {'pid': 42}})
        result = qga.command('guest-exec', path='/bin/true',
                             capture_output=True)
        self.assertEqual(result, {'pid': 42})
        self.assertEqual(peer.sent()[-1],
                         {'execute': 'guest-exec',
                          'arguments': {'path': '/bin/true',
                                        'capture-output': True}})

    def test_event_is_bad_reply(self):
        _, qga = synced({'event': 'SHUTDOWN'})
        with self.assertRaises(BadReplyError):
            qga.execute(RawCommand('guest-ping'))
        self.assertEqual(qga.runstate, Runstate.BROKEN)

    def test_eof(self):
        _, qga = synced()
        with self.assertRaises(UnexpectedEOFError):
            qga.execute(RawCommand('guest-ping'))
        self.assertEqual(qga.runstate, Runstate.BROKEN)

    def test_into_inner(self):
        peer, qga = synced()
        self.assertIs(qga.into_inner(), peer.stream)
        self.assertEqual(qga.runstate, Runstate.CLOSED)
        with self.assertRaises(StateError):
            qga.execute(RawCommand('guest-ping'))

    def test_logging(self):
        qga = QGA(FakePeer({'return': NONCE}).stream, 'guest0')
        self.assertEqual(qga.logger.name, 'qemu.qapi.qga.guest0')
        self.assertEqual(repr(qga), "<QGA name='guest0' runstate=UNSYNCED>")
        with self.assertLogs('qemu.qapi.qga.guest0', 'DEBUG') as context:
            with mock.patch('qemu.qapi.qga.nonce', return_value=NONCE):
                qga.handshake()
        output = '\n'.join(context.output)
        self.assertIn(f'Synchronizing with nonce {NONCE}', output)
        self.assertIn("from 'UNSYNCED' to 'SYNCED'", output)
        self.assertEqual(repr(qga), "<QGA name='guest0' runstate=SYNCED>")


class NonceTest(QAPITestCase):

    def test_increasing(self):
        values = [nonce() for _ in range(100)]
        self.assertEqual(values, sorted(set(values)))
        self.assertTrue(all(isinstance(value, int) for value in values))
        self.assertGreater(values[0], 0)


if __name__ == '__main__':
    QAPITestCase.main()
