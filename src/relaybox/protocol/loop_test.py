import threading
import time
import unittest
from unittest.mock import Mock, call, patch

import timeout_decorator
from hamcrest import assert_that, calling, instance_of, is_, is_not, raises

from relaybox.protocol.loop import AsyncLoop
from relaybox.support.shutdown import ShutdownSignal


class NastyException(Exception):
    """ really nasty """


class AsyncLoopTest(unittest.TestCase):
    @timeout_decorator.timeout(2)
    def test_real_thread(self):
        thread = None
        sut = None
        loop_thread = None

        def fn():
            nonlocal thread, loop_thread
            thread = threading.current_thread()
            loop_thread = sut.background_thread
            time.sleep(0.001)
        loop = Mock(side_effect=fn)
        sut = AsyncLoop(loop, name='test-loop')
        sut.startup = Mock()
        sut.shutdown = Mock()
        sut.start()
        while not loop.call_count:
            time.sleep(0)

        running = sut.running()
        assert_that(thread, is_not(None))
        assert_that(thread, is_(loop_thread))
        assert_that(thread.name, is_('test-loop'))
        assert_that(running, is_(True))
        sut.stop()
        assert_that(sut.running(), is_(False))
        assert_that(sut.background_thread.is_alive(), is_(False))
        sut.shutdown.assert_called_once_with()
        sut.startup.assert_called_once_with()

    def test_run_invokes_startup_shutdown_around_loop(self):
        running = Mock(return_value=True)

        def fn():
            if running.call_count > 1:
                running.return_value = False

        loop = Mock(side_effect=fn)
        sut = AsyncLoop(loop)
        sut.shutdown = Mock()
        sut.startup = Mock()
        sut.running = running
        manager = Mock()
        manager.attach_mock(sut.startup, 'startup')
        manager.attach_mock(sut.shutdown, 'shutdown')
        manager.attach_mock(loop, 'loop')
        sut._run()
        self.assertEqual(manager.mock_calls, [call.startup(), call.loop(), call.loop(), call.shutdown()])

    def test_an_exception_stops_the_loop(self):
        loop = Mock(side_effect=NastyException())
        sut = AsyncLoop(loop)
        sut.exception_handler = Mock()
        sut.shutdown = Mock()
        sut._run()
        self.assertEqual(loop.call_count, 1)
        sut.exception_handler.assert_called_once_with(loop.side_effect)
        sut.shutdown.assert_called_once_with()

    def test_startup_exception_skips_loop(self):
        loop = Mock()
        sut = AsyncLoop(loop)
        sut.startup = Mock(side_effect=NastyException())
        sut.exception_handler = Mock()
        sut._run()
        loop.assert_not_called()
        sut.exception_handler.assert_called_once_with(sut.startup.side_effect)

    def test_loop_does_not_run_when_already_stopped(self):
        signal = ShutdownSignal()
        signal.trigger()
        loop = Mock()
        sut = AsyncLoop(loop, stop_event=signal)
        sut._run()
        loop.assert_not_called()

    def test_loop_passes_args(self):
        fn = Mock()
        sut = AsyncLoop(fn, args=(1, 'two'))
        sut.loop()
        fn.assert_called_once_with(1, 'two')

    @patch('threading.Thread')
    def test_starting_an_already_started_loop(self, thread):
        sut = AsyncLoop(Mock())
        the_thread = Mock()
        thread.return_value = the_thread
        sut.start()
        thread.assert_called_once_with(target=sut._run, name=None)
        assert_that(sut.background_thread, is_(the_thread))
        assert_that(sut.stop_event, is_(instance_of(ShutdownSignal)))
        assert_that(the_thread.daemon, is_(True))
        the_thread.start.assert_called_once_with()
        thread.reset_mock()
        sut.start()
        thread.assert_not_called()

    def test_stop_when_not_started_is_harmless(self):
        sut = AsyncLoop()
        sut.stop()
        assert_that(sut.running(), is_(False))

    @timeout_decorator.timeout(2)
    def test_shared_signal_stops_all_loops(self):
        signal = ShutdownSignal()
        loops = [AsyncLoop(lambda: signal.wait(0.01), stop_event=signal) for _ in range(3)]
        for loop in loops:
            loop.start()
        loops[0].stop()
        for loop in loops:
            assert_that(loop.join(1), is_(True))
            assert_that(loop.running(), is_(False))

    @timeout_decorator.timeout(2)
    def test_thread_exception(self):
        expected = NastyException()
        exception = None

        def fn():
            raise expected

        def capture_exception(e):
            nonlocal exception
            exception = e

        sut = AsyncLoop(fn)
        sut.exception_handler = Mock(side_effect=capture_exception)
        sut.start()
        sut.join()
        assert_that(exception, is_(expected))
        assert_that(sut.exception_handler.call_count, is_(1))

    def test_default_exception_handler_logs_exception(self):
        sut = AsyncLoop(None)
        sut.logger = Mock()
        e = NastyException()
        sut.exception_handler(e)
        sut.logger.exception.assert_called_once_with(e)

    @timeout_decorator.timeout(2)
    def test_calling_stop_on_loop(self):
        sut = None

        def stop():
            sut.stop()

        sut = AsyncLoop(stop)
        sut.start()
        assert_that(sut.join(1), is_(True))
        sut.stop()

    @patch('threading.Thread')
    def test_failed_start_can_be_joined(self, thread):
        thread.return_value.start.side_effect = RuntimeError("can't start new thread")
        sut = AsyncLoop(Mock())
        assert_that(calling(sut.start), raises(RuntimeError))
        assert_that(sut.background_thread, is_(None))
        assert_that(sut.join(0), is_(True))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
