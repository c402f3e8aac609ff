#!/usr/bin/env python3
#
# Duplex stream adapter tests
#
# Copyright (C) 2026 The qemu.qapi authors
#
# This work is licensed under the terms of the GNU LGPL, version 2 or
# later.  See the COPYING file in the top-level directory.

import io
import os
import socket

from qapi_test import QAPITestCase

from qemu.qapi import Stream


class BrokenWriter(io.RawIOBase):

    def writable(self):
        return True

    def write(self, b):
        raise BrokenPipeError(32, 'Broken pipe')


class StreamTest(QAPITestCase):

    def test_routes_reads_and_writes(self):
        rx = io.BytesIO(b'first line\nsecond')
        tx = io.BytesIO()
        stream = Stream(rx, tx)

        self.assertEqual(stream.readline(), b'first line\n')
        stream.write(b'hello')
        stream.flush()
        self.assertEqual(stream.read(), b'second')

        self.assertEqual(tx.getvalue(), b'hello')
        # Nothing written ended up on the read side.
        self.assertEqual(rx.getvalue(), b'first line\nsecond')

    def test_readline_limit(self):
        stream = Stream(io.BytesIO(b'0123456789\n'), io.BytesIO())
        self.assertEqual(stream.readline(4), b'0123')
        self.assertEqual(stream.readline(), b'456789\n')
        self.assertEqual(stream.readline(), b'')

    def test_into_inner(self):
        rx, tx = io.BytesIO(), io.BytesIO()
        stream = Stream(rx, tx)
        self.assertIs(stream.reader, rx)
        self.assertIs(stream.writer, tx)
        self.assertEqual(stream.into_inner(), (rx, tx))

    def test_errors_propagate_unchanged(self):
        stream = Stream(io.BytesIO(), BrokenWriter())
        with self.assertRaises(BrokenPipeError):
            stream.write(b'x')

    def test_close(self):
        rx, tx = io.BytesIO(), io.BytesIO()
        with Stream(rx, tx) as stream:
            self.assertFalse(stream.closed)
        self.assertTrue(rx.closed)
        self.assertTrue(tx.closed)
        self.assertTrue(stream.closed)

    def test_from_socket(self):
        ours, theirs = socket.socketpair()
        with theirs, ours:
            stream = Stream.from_socket(ours)
            theirs.sendall(b'{"return": {}}\n')
            self.assertEqual(stream.readline(), b'{"return": {}}\n')

            stream.write(b'ping\n')
            stream.flush()
            self.assertEqual(theirs.recv(64), b'ping\n')
            stream.close()

    def test_from_file(self):
        rfd, wfd = os.pipe()
        with os.fdopen(wfd, 'wb', buffering=0) as pipe_w:
            pipe_w.write(b'line one\nline two\n')

        raw = io.FileIO(rfd, 'rb')
        stream = Stream.from_file(raw)
        self.assertIsInstance(stream.reader, io.BufferedReader)
        self.assertIs(stream.writer, raw)
        self.assertEqual(stream.readline(), b'line one\n')
        self.assertEqual(stream.readline(), b'line two\n')
        self.assertEqual(stream.readline(), b'')
        stream.close()
        self.assertTrue(raw.closed)


if __name__ == '__main__':
    QAPITestCase.main()
