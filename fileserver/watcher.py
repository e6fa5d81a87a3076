"""
Watching files for changes. Notifier is a primitive that reports changes of
a single path, WatchRegistry makes sure that there is only one notifier watch
per path, no matter how many file servers are serving that path
"""

import abc
import atexit
import logging
import os
import threading
from typing import Dict, Hashable, List, Optional, Tuple

import inotify.adapters
import inotify.constants
from inotify.calls import InotifyError

from .exceptions import WatchError
from .typehints import Path, ChangeCallback

# disable inotify logs cause they're useless
logging.getLogger('inotify.adapters').disabled = True

logger = logging.getLogger(__name__)

CHANGE_EVENTS = {'IN_MODIFY', 'IN_CLOSE_WRITE', 'IN_ATTRIB', 'IN_CREATE',
                 'IN_DELETE', 'IN_MOVED_FROM', 'IN_MOVED_TO'}
LOST_EVENTS = {'IN_DELETE_SELF', 'IN_MOVE_SELF', 'IN_IGNORED', 'IN_UNMOUNT'}
DIRECTORY_MASK = (inotify.constants.IN_MODIFY
                  | inotify.constants.IN_CLOSE_WRITE
                  | inotify.constants.IN_ATTRIB
                  | inotify.constants.IN_CREATE
                  | inotify.constants.IN_DELETE
                  | inotify.constants.IN_MOVED_FROM
                  | inotify.constants.IN_MOVED_TO
                  | inotify.constants.IN_DELETE_SELF
                  | inotify.constants.IN_MOVE_SELF
                  | inotify.constants.IN_ONLYDIR)


class Watch(abc.ABC):
    path: Path

    @property
    def active(self) -> bool:
        """
        False once changes of the path can no longer be reported
        """

        return True

    @abc.abstractmethod
    def close(self) -> None:
        """
        Stop reporting changes. Closing twice does nothing
        """


class Notifier(abc.ABC):
    @abc.abstractmethod
    def watch(self, path: Path, on_change: ChangeCallback) -> Watch:
        """
        Start reporting changes of the path to on_change. Changes only,
        no initial event is emitted. Raises WatchError if the path can't
        be watched, for example when its directory does not exist
        """

    def close(self) -> None:
        ...


class InotifyWatch(Watch):
    def __init__(self, notifier: 'InotifyNotifier', path: Path, directory: Path):
        self.notifier = notifier
        self.path = path
        self.directory = directory
        self.closed = False

    @property
    def active(self) -> bool:
        return not self.closed and self.notifier.is_armed(self.directory)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.notifier.unwatch(self.path)


class _Directory:
    def __init__(self):
        self.armed = False
        # file name inside the directory: {watched path: callback}
        self.files: Dict[str, Dict[Path, ChangeCallback]] = {}


class InotifyNotifier(Notifier):
    """
    Single inotify instance for all the watched files. Files are watched
    through their parent directories, so a file replaced by renaming another
    one over it is still reported, and a file that does not exist yet can be
    watched too

    Events are read in a separated daemon thread, so on_change callbacks are
    called from it
    """

    def __init__(self, poll_timeout: float = .5):
        self.poll_timeout = poll_timeout
        self.inotify = inotify.adapters.Inotify()
        self.directories: Dict[Path, _Directory] = {}

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    def watch(self, path: Path, on_change: ChangeCallback) -> InotifyWatch:
        directory, name = os.path.split(os.path.abspath(path))

        with self._lock:
            entry = self.directories.get(directory)

            if entry is None or not entry.armed:
                self._arm(path, directory)

                if entry is None:
                    entry = self.directories[directory] = _Directory()

                entry.armed = True

            entry.files.setdefault(name, {})[path] = on_change

            if not self._running:
                self._start()

        logger.debug(f'InotifyNotifier: watching file: {path}')

        return InotifyWatch(self, path, directory)

    def unwatch(self, path: Path) -> None:
        directory, name = os.path.split(os.path.abspath(path))

        with self._lock:
            entry = self.directories.get(directory)

            if entry is None or entry.files.get(name, {}).pop(path, None) is None:
                return

            if not entry.files[name]:
                del entry.files[name]

            if entry.files:
                return

            del self.directories[directory]

            try:
                self.inotify.remove_watch(directory, superficial=not entry.armed)
            except InotifyError as exc:
                # kernel drops the watch by itself when directory is deleted or moved
                logger.debug(f'InotifyNotifier: watch of {directory} is already gone: {exc}')

    def is_armed(self, directory: Path) -> bool:
        entry = self.directories.get(directory)

        return entry is not None and entry.armed

    def close(self) -> None:
        with self._lock:
            paths = [path for entry in self.directories.values()
                     for callbacks in entry.files.values() for path in callbacks]

        for path in paths:
            self.unwatch(path)

        self._running = False

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()

        self._thread = None

    def _arm(self, path: Path, directory: Path) -> None:
        # forget the watch the kernel has dropped, otherwise adapter won't add it again
        self.inotify.remove_watch(directory, superficial=True)

        try:
            self.inotify.add_watch(directory, DIRECTORY_MASK)
        except InotifyError as exc:
            raise WatchError(path, exc) from exc

    def _start(self) -> None:
        self._running = True
        self._thread = threading.Thread(target=self._events_listener,
                                        name='fileserver-inotify', daemon=True)
        self._thread.start()

    def _events_listener(self) -> None:
        while self._running:
            events = self.inotify.event_gen(yield_nones=False,
                                            timeout_s=self.poll_timeout,
                                            terminal_events=())

            for event in events:
                # otherwise, previous line could be much more longer than it should
                _, event_types, directory, name = event

                if name:
                    changed = self._changed(directory, name, event_types)
                else:
                    changed = self._lost(directory, event_types)

                for path, callback in changed:
                    callback(path)

                if not self._running:
                    return

    def _changed(self,
                 directory: Path,
                 name: str,
                 event_types: List[str]) -> List[Tuple[Path, ChangeCallback]]:
        if CHANGE_EVENTS.isdisjoint(event_types):
            return []

        with self._lock:
            entry = self.directories.get(directory)

            if entry is None:
                return []

            return list(entry.files.get(name, {}).items())

    def _lost(self,
              directory: Path,
              event_types: List[str]) -> List[Tuple[Path, ChangeCallback]]:
        """
        Directory itself was deleted, moved or unmounted. Every file in it
        counts as changed, watch is armed again when the path is acquired next
        """

        if LOST_EVENTS.isdisjoint(event_types):
            return []

        with self._lock:
            entry = self.directories.get(directory)

            if entry is None or not entry.armed:
                return []

            entry.armed = False
            logger.debug(f'InotifyNotifier: lost watch of directory: {directory}')

            return [item for callbacks in entry.files.values() for item in callbacks.items()]


class _Subscription:
    def __init__(self, watch: Watch):
        self.watch = watch
        # owner: its own change listener
        self.listeners: Dict[Hashable, ChangeCallback] = {}


class WatchRegistry:
    """
    Process-wide table of watches: one notifier watch per path, shared by
    every owner that acquired the path. Each owner has its own listener, and
    the watch is closed when the last owner releases it
    """

    def __init__(self, notifier: Optional[Notifier] = None):
        self._notifier = notifier
        self._subscriptions: Dict[Path, _Subscription] = {}
        self._lock = threading.RLock()

    @property
    def notifier(self) -> Notifier:
        with self._lock:
            if self._notifier is None:
                self._notifier = InotifyNotifier()

            return self._notifier

    def acquire(self, path: Path, owner: Hashable, on_change: ChangeCallback) -> bool:
        """
        Returns True if the owner started listening to the path now, and
        False if it was listening already or the path can't be watched.
        A watch that stopped reporting changes is armed again here
        """

        with self._lock:
            subscription = self._subscriptions.get(path)

            if subscription is None or not subscription.watch.active:
                try:
                    watch = self.notifier.watch(path, self._dispatch)
                except WatchError as exc:
                    # may happen for every request in a directory, so not an error
                    logger.debug(f'WatchRegistry: failed to start watching file {path}: {exc.reason}')
                    return False

                if subscription is None:
                    subscription = self._subscriptions[path] = _Subscription(watch)
                else:
                    subscription.watch = watch

            if owner in subscription.listeners:
                return False

            subscription.listeners[owner] = on_change

        return True

    def release(self, path: Path, owner: Hashable) -> None:
        with self._lock:
            subscription = self._subscriptions.get(path)

            if subscription is None or subscription.listeners.pop(owner, None) is None:
                return

            if not subscription.listeners:
                del self._subscriptions[path]
                subscription.watch.close()
                logger.debug(f'WatchRegistry: stopped watching file: {path}')

    def release_owner(self, owner: Hashable) -> List[Path]:
        with self._lock:
            paths = [path for path, subscription in self._subscriptions.items()
                     if owner in subscription.listeners]

            for path in paths:
                self.release(path, owner)

        return paths

    def close_all(self) -> None:
        """
        Closes every watch, regardless of the owners. Used at interpreter exit
        """

        with self._lock:
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()

        for subscription in subscriptions:
            subscription.watch.close()

        if self._notifier is not None:
            self._notifier.close()

    def owners(self, path: Path) -> List[Hashable]:
        with self._lock:
            subscription = self._subscriptions.get(path)

            return list(subscription.listeners) if subscription else []

    def _dispatch(self, path: Path) -> None:
        with self._lock:
            subscription = self._subscriptions.get(path)
            listeners = list(subscription.listeners.values()) if subscription else []

        for listener in listeners:
            listener(path)

    def __contains__(self, path: Path) -> bool:
        return path in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)


_default_registry: Optional[WatchRegistry] = None
_default_registry_lock = threading.Lock()


def default_registry() -> WatchRegistry:
    global _default_registry

    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = WatchRegistry()
            atexit.register(_default_registry.close_all)

        return _default_registry
