import inspect
from functools import lru_cache
from typing import Callable, Mapping, Tuple


@lru_cache(100)
def get_function_defaults(for_func: Callable) -> dict:
    """ Get a dict of function's keyword arguments that have default values """
    return {
        name: param.default
        for name, param in inspect.signature(for_func).parameters.items()
        if param.default is not inspect.Parameter.empty
    }


def pluck_kwargs_from(dct: Mapping, for_func: Callable, skip: Tuple[str] = ()) -> dict:
    """ Analyze a function, pluck the arguments it needs from a dict """
    defaults = get_function_defaults(for_func)

    # A value of `None` in the settings means "use the default"
    return {k: dct[k] if dct.get(k) is not None else default
            for k, default in defaults.items()
            if k not in skip}


class QuerySettingsHandler:
    """ Settings keeper for QueryParser

        This is essentially a helper which will feed the correct kwargs to every handler.

        Handlers receive settings as kwargs to their __init__() methods, and those kwargs have unique names.
        This class will collect all settings as a single, flat dict,
        and give each handler only the settings it wants.
    """

    #: Settings that are not handler kwargs, but are known to QueryParser itself
    OTHER_KNOWN_KEYS = frozenset(('skip_query_parser',))

    def __init__(self, settings: Mapping):
        """ Store the settings for every handler

            :param settings: dict of handler kwargs
        """
        assert isinstance(settings, Mapping)

        #: Settings dict
        self._settings = dict(settings)

        #: kwarg names for every handler: dict[handler] = set()
        self._handler_kwargs_names = {}

        #: all kwargs names (to identify invalid ones)
        self._all_known_kwargs_names = set()

    def get(self, key, default=None):
        """ Get a setting that is not a handler kwarg """
        value = self._settings.get(key)
        return default if value is None else value

    def get_settings(self, handler_name: str, handler_cls: type) -> dict:
        """ Get settings for the given handler

            The handler's __init__() is analyzed in order to know its kwargs and their default values.
            Then, we take the matching keys from the settings dict, take defaults from the argument defaults,
            and make it all into `kwargs` that will be given to the class.
        """
        kwargs = pluck_kwargs_from(self._settings, for_func=handler_cls.__init__)

        # Store the data that we'll need
        self._handler_kwargs_names[handler_name] = set(kwargs)
        self._all_known_kwargs_names.update(kwargs)

        # Done
        return kwargs  # for the handler's __init__()

    def raise_if_invalid_handler_settings(self, query_parser=None):
        """ Check whether there were any typos in setting names

            After all handlers were initialized, we've had a chance to analyze all their keyword arguments.
            Now we can check whether every setting was actually used. If not, there must be a typo.

            :raises: KeyError: Invalid settings provided
        """
        all_known_keys = self._all_known_kwargs_names | self.OTHER_KNOWN_KEYS
        invalid_keys = set(self._settings) - all_known_keys

        if invalid_keys:
            raise KeyError('Invalid settings were provided for {!r}: {}'
                           .format(query_parser, ','.join(sorted(invalid_keys))))

    def __repr__(self):
        return '{}({!r})'.format(self.__class__.__name__, self._settings)
