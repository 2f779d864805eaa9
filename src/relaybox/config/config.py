import os
import platform

from configobj import ConfigObj, ConfigObjError, Section
from validate import Validator

# The default extension for configuration files
config_extension = '.cfg'

# The directory holding the configuration files shipped with the package
package_config_dir = os.path.dirname(__file__)


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file in the given directory.
    """
    config_file = os.path.join(directory, name + config_extension)
    return config_file


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None) -> ConfigObj:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name.
    :param name:    The name of the base configuration
    :param subpart: The name of the specialization.
    :return: The ConfigObj for the configuration file.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    return load_config_file_base(file, False)


def load_config_spec(file) -> ConfigObj:
    """
    Loads a configuration schema. Checks such as ``float(min=0, default=1)`` are kept whole
    rather than split into lists at the commas.
    :param file: the schema file. A missing file gives an empty schema.
    :return: The ConfigObj to use as a configspec.
    """
    try:
        return ConfigObj(file, list_values=False, _inspec=True) if os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


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


def load_config(name, directory):
    """
        Loads all the configuration files that relate to the given name.
        Configurations are merged in this order, later ones overriding earlier ones:
        - the default specialization
        - the platform specialization
        - the user override in the home directory
        - the base configuration
        The merged configuration is validated against the "schema" specialization.
    :param name: the base name of the configuration files
    :param directory: the location of the configuration files
    :return: the validated configuration
    """
    local_config = config_flavor_file(name, directory)
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(os.path.expanduser(
        '~/' + name + config_extension), must_exist=False)
    config = ConfigObj()
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    config.merge(local_config)

    config.configspec = load_config_spec(config_filename(config_flavor(name, 'schema'), directory))
    validator = Validator()
    result = config.validate(validator)
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:        The root configuration
    :param path:        An iterable that lists the names of the sections to resolve
    :return: The configuration section identified by the path, or None
    """
    for p in path:
        conf = conf.get(p, None)
        if conf is None:
            return
    return conf


def apply_conf_path(conf: Section, name_parts, target):
    """
    Applies a configuration path to a given target object
    :param conf:        The root configuration object
    :param name_parts:  The path of the configuration to apply
    :param target:      The target object that receives the configured values
    :return: True if the path was found
    """
    conf = fetch_conf_path(conf, name_parts)
    if conf:
        apply_conf(conf, target)
    return conf is not None


def apply_conf(conf: Section, target):
    """
    Applies the attributes contained in a configuration object to a target object.
    Only attributes the target already has are set.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


def configure_relay(config, name='relay', directory=None, path='relay'):
    """
    Applies the relay settings from the configuration files onto a RelayConfig.
    :param config: the RelayConfig to receive the configured values
    :param name: the base name of the configuration files
    :param directory: where the configuration files live. Defaults to the files shipped with the package.
    :param path: the dotted section path of the relay settings
    :return: the config passed in
    """
    conf = load_config(name, directory if directory is not None else package_config_dir)
    apply_conf_path(conf, path.split('.'), config)
    return config
