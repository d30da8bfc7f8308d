import configparser
import os
import json
from typing import Optional, Union, Any, Callable

import podcast_studio.utils.util as du

ENV_OVERRIDE_PREFIX = "PODCAST_STUDIO__"
DEFAULT_CONFIG_FILE = "conf/podcast-studio.ini"

def singleton( cls: type ) -> Callable[..., Any]:
    """
    Decorator that implements the Singleton pattern.

    Requires:
        - cls is a valid class type

    Ensures:
        - Only one instance of cls is created
        - All calls return the same instance
        - Provides a reset method for testing
    """

    instances = { }

    def wrapper( *args: Any, **kwargs: Any ) -> Any:

        # Check for the special _reset_singleton flag for testing
        if kwargs.pop( "_reset_singleton", False ):
            instances.pop( cls, None )

        if cls not in instances:
            instances[ cls ] = cls( *args, **kwargs )

        return instances[ cls ]

    def reset_for_testing():
        """Reset the singleton instance for testing purposes"""
        if cls in instances:
            del instances[ cls ]
            return True
        return False

    wrapper.reset_for_testing = reset_for_testing

    return wrapper

@singleton
class ConfigurationManager():
    """
    Manages application configuration with default-block inheritance and overrides.

    Configuration is read from an INI file. The active block inherits every key
    from the [default] block that it does not define itself. Values can then be
    overridden by explicit cli_args and by PODCAST_STUDIO__<KEY> environment
    variables, in that order.
    """

    def __init__( self, env_var_name: Optional[str]=None, config_path: Optional[str]=None, config_block_id: str="default", debug: bool=False, verbose: bool=False, silent: bool=True, cli_args: Optional[dict[str, str]]=None ) -> None:
        """
        Initialize the configuration manager.

        Requires:
            - If env_var_name is provided, the environment variable must exist and contain
              "config_path=... config_block_id=..." name=value pairs
            - config_path must be a valid file path if provided

        Ensures:
            - Configuration is loaded from the explicit path, the env var, or the bundled INI file
            - Default values are applied to the active block
            - CLI and environment overrides are processed

        Raises:
            - ValueError if env_var_name is provided but not found in environment
            - ValueError if both env_var_name and config_path are provided
            - FileNotFoundError if the config file doesn't exist
            - KeyError if config_block_id doesn't exist in configuration
        """
        self.debug   = debug
        self.verbose = verbose
        self.silent  = silent

        if env_var_name is not None and config_path is not None:
            raise ValueError(
                "ConfigurationManager initialization error: Conflicting initialization parameters.\n"
                "Either provide env_var_name OR provide config_path, not both."
            )

        cli_args = dict( cli_args ) if cli_args else { }

        if env_var_name is not None:

            if env_var_name not in os.environ: raise ValueError( f"[{env_var_name}] is NOT set" )

            env_args = du.get_name_value_pairs( os.environ[ env_var_name ].split( " " ) )

            config_path     = env_args.pop( "config_path", DEFAULT_CONFIG_FILE )
            config_block_id = env_args.pop( "config_block_id", config_block_id ).replace( "+", " " )
            cli_args.update( env_args )

        if config_path is None:
            config_path = DEFAULT_CONFIG_FILE

        if not os.path.isabs( config_path ):
            config_path = os.path.join( du.get_package_root(), config_path )

        self.config_path     = config_path
        self.config_block_id = config_block_id
        self.config          = None

        self.init( cli_args=cli_args )

    def init( self, cli_args: Optional[dict[str, str]]=None ) -> None:
        """
        Initialize or reinitialize the configuration.

        Requires:
            - self.config_path names a readable INI file

        Ensures:
            - Configuration is loaded, defaulted and overridden

        Raises:
            - FileNotFoundError if path doesn't exist
            - KeyError if config_block_id not found
        """
        if not os.path.isfile( self.config_path ):
            raise FileNotFoundError( f"Configuration file not found [{self.config_path}]" )

        if not self.silent:
            du.print_banner( f"Initializing configuration_manager [{self.config_path}]", prepend_nl=True, end="\n" )

        self.config = configparser.ConfigParser()
        self.config.read( self.config_path )

        self._sanity_check_config_block( self.config_block_id )

        self._calculate_defaults()
        self._override_configuration( cli_args )
        self._override_from_environment()

    def _sanity_check_config_block( self, block_id: str ) -> None:
        """
        Verify that a configuration block exists.

        Raises:
            - KeyError with descriptive message if block not found
        """
        if block_id != "default" and block_id not in self.config.sections():
            raise KeyError( "Configuration block doesn't exist: [{0}] Check spelling?".format( block_id ) )

        if block_id == "default" and "default" not in self.config.sections():
            self.config.add_section( "default" )

    def _calculate_defaults( self ) -> None:
        """
        Apply default values to the current configuration block.

        Ensures:
            - All keys from 'default' section are added to current block
            - Existing keys in current block are not overwritten
            - Nothing happens if current block is 'default'
        """
        if self.config_block_id == "default" or "default" not in self.config.sections():
            return

        for key in self.config.options( "default" ):

            if self.config.has_option( self.config_block_id, key ):
                continue

            if self.debug and self.verbose: print( "Inserting default key [{0}] into [{1}]".format( key, self.config_block_id ) )
            self.config.set( self.config_block_id, key, self.config.get( "default", key ) )

    def _override_configuration( self, cli_args: Optional[dict[str, str]] ) -> None:
        """
        Override configuration values with CLI arguments.

        Ensures:
            - Configuration values are updated with cli_args values
            - config_path and config_block_id are not overridden (immutable)
        """
        if not cli_args:
            if self.debug: print( "Skipping cli_args processing" )
            return

        for key, value in cli_args.items():

            if key in ( "config_path", "config_block_id" ):
                if not self.silent: print( f"Skipping override of [{key}], it's immutable" )
                continue

            key = key.replace( "+", " " )
            if not self.silent: print( "Overriding [{0}] with [{1}]".format( key, value ) )
            self.set_config( key, value )

    def _override_from_environment( self ) -> None:
        """
        Apply PODCAST_STUDIO__<KEY> environment overrides.

        Ensures:
            - PODCAST_STUDIO__DATABASE_URL overrides key "database url"
            - Underscores in the suffix become spaces and the key is lowercased
        """
        for name, value in os.environ.items():

            if not name.startswith( ENV_OVERRIDE_PREFIX ):
                continue

            key = name[ len( ENV_OVERRIDE_PREFIX ): ].replace( "_", " " ).lower()
            if self.debug: print( "Environment override [{0}]".format( key ) )
            self.set_config( key, value )

    def set_config( self, config_key: str, value: Any ) -> None:
        """
        Set or update a configuration value in the active block.

        Ensures:
            - Value is converted to string before storage
            - Existing values are overwritten
        """
        self.config.set( self.config_block_id, config_key.lower(), str( value ) )

    def exists( self, config_key: str ) -> bool:
        """
        Checks if the specified configuration key exists in the current config block.

        Notes:
            - ConfigParser lowercases all keys when reading configuration files,
              so the comparison is case-insensitive
        """
        return self.config.has_option( self.config_block_id, config_key.lower() )

    def get_keys( self ) -> list[str]:
        """Sorted keys of the active block, including inherited defaults."""
        return sorted( self.config.options( self.config_block_id ) )

    def get( self, key: str, default: Union[str, int, float, bool, list]="@@@_None_@@@", return_type: str="string" ) -> Optional[Union[str, int, float, bool, list, dict]]:
        """
        Get a configuration value with optional type conversion.

        Requires:
            - key is a non-empty string
            - return_type is one of: 'boolean', 'float', 'int', 'string', 'list-string', 'json'

        Ensures:
            - Returns typed value if key exists
            - Returns typed default if key doesn't exist and default provided
            - Returns None if key doesn't exist and no default

        Raises:
            - ValueError if return_type is invalid
            - json.JSONDecodeError for malformed json values
        """
        if self.exists( key ):
            value = self.config.get( self.config_block_id, key.lower() )
            return self._get_typed_value( value, return_type )

        if default != "@@@_None_@@@":
            if self.debug: print( "Key [{0}] NOT found, returning default [{1}]".format( key, default ) )
            return self._get_typed_value( default, return_type )

        if not self.silent: du.print_banner( "Key [{0}] NOT found".format( key ), end="\n" )
        return None

    def _get_typed_value( self, value: Any, return_type: str ) -> Union[str, int, float, bool, list, dict]:
        """
        Convert a configuration value to the requested type.

        Ensures:
            - Handles boolean conversion from strings such as 'True', 'true', 'yes', '1'
            - Handles list-string by splitting on commas and stripping items
            - Handles JSON parsing

        Raises:
            - ValueError if return_type is invalid
        """
        return_type = return_type.lower()

        if return_type == "boolean":
            if isinstance( value, bool ):
                return value
            return str( value ).strip().lower() in ( "true", "yes", "1", "on" )
        elif return_type == "float":
            return float( value )
        elif return_type.startswith( "int" ):
            return int( value )
        elif return_type.startswith( "str" ):
            return value
        elif return_type == "list-string":
            if isinstance( value, list ):
                return value
            return [ item.strip() for item in str( value ).split( "," ) if item.strip() ]
        elif return_type == "json":
            if isinstance( value, ( dict, list ) ):
                return value
            return json.loads( value )
        else:
            raise ValueError( f"Return type [{return_type}] is invalid.  Accepts: 'boolean', 'float', 'int', 'string', 'list-string' and 'json'" )


def quick_smoke_test():
    """Quick smoke test for ConfigurationManager."""
    du.print_banner( "ConfigurationManager Smoke Test", prepend_nl=True )

    try:
        config_mgr = ConfigurationManager( config_block_id="development", silent=False )
        print( f"✓ Loaded [{config_mgr.config_path}] block [{config_mgr.config_block_id}]" )
        print( f"✓ database url = {config_mgr.get( 'database url' )}" )
        print( f"✓ job timeout seconds = {config_mgr.get( 'script job timeout seconds', 600, return_type='int' )}" )
        print( "\n✓ ConfigurationManager smoke test completed successfully" )

    except Exception as e:
        print( f"\n✗ Smoke test failed: {e}" )
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    quick_smoke_test()
