"""
Layered configuration files, validated against a schema.

For a configuration named `name` in `directory`, these files are read in order, later files overriding
earlier ones:

- name.default.cfg     the shipped defaults
- name.<os>.cfg        platform specific values (windows, osx, linux)
- ~/name.cfg           the user's overrides
- name.cfg             the local overrides

and the result is validated against name.schema.cfg. Only the defaults and the schema are required to exist.
"""
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from configobj.validate import Validator

# The default extension for configuration files
config_extension = '.cfg'

# the name of the configuration shipped with this package
SESSION_CONFIG = 'dappconnect'


def config_flavor(name, flavor=None):
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an IOError is raised.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, flavor=None, must_exist=False) -> ConfigObj:
    return load_config_file_base(config_filename(config_flavor(name, flavor), directory), must_exist)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def describe_errors(config, result):
    """ formats the failures from a validation result as one line per failed value """
    lines = []
    for sections, key, error in flatten_errors(config, result):
        path = '.'.join(sections + [key]) if key is not None else '.'.join(sections)
        lines.append('%s: %s' % (path, error if error is not False else 'missing'))
    return '; '.join(lines)


def load_config(name, directory, user_directory='~'):
    """
    Loads and merges all the configuration files for the given name and validates the result.
    Raises ConfigObjError when the configuration does not validate.
    :return: the validated ConfigObj
    """
    schema = config_filename(config_flavor(name, 'schema'), directory)
    if not os.path.exists(schema):
        raise IOError('schema %s not found' % schema)
    config = ConfigObj(configspec=schema, interpolation='Template')
    config.merge(config_flavor_file(name, directory, 'default', must_exist=True))
    config.merge(config_flavor_file(name, directory, os_name()))
    config.merge(load_config_file_base(config_filename(name, os.path.expanduser(user_directory)),
                                       must_exist=False))
    config.merge(config_flavor_file(name, directory))

    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        raise ConfigObjError('the config file %s failed validation: %s' % (name, describe_errors(config, result)))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:    The root configuration
    :param path:    An iterable that lists the names of the sections to descend through
    :return: The configuration section identified by the path, or None
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return
    return conf


def apply_conf(conf: Section, target):
    """
    Sets each attribute of target that has the same name as a value or section in the configuration.
    Sections are applied as plain dicts.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v.dict() if isinstance(v, Section) else v)


class SessionSettings:
    """
    Settings for a wallet session. The attributes hold the defaults used when no configuration is loaded.
    """

    def __init__(self):
        self.supported_chain_ids = [1, 3, 4, 5, 42]
        self.polling_interval = 8.0     # seconds between block polls
        self.default_chain_id = 1
        self.network_urls = {}          # chain id -> RPC url
        self.walletconnect = {}
        self.walletlink = {}

    def normalize(self):
        self.supported_chain_ids = [int(c) for c in self.supported_chain_ids]
        self.network_urls = {int(k): v for k, v in self.network_urls.items()}
        return self


def load_settings(directory=None, name=SESSION_CONFIG, section=None, user_directory='~') -> SessionSettings:
    """
    Loads the session settings.
    :param directory    where the configuration files are. Defaults to the files shipped with this package.
    :param section  a dotted path to a section holding the settings. Defaults to the top level.
    """
    directory = directory or os.path.dirname(__file__)
    config = load_config(name, directory, user_directory)
    if section:
        config = fetch_conf_path(config, section.split('.'))
        if config is None:
            raise ConfigObjError('section %s not found in %s' % (section, name))
    settings = SessionSettings()
    apply_conf(config, settings)
    return settings.normalize()
