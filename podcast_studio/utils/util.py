import os
from typing import Optional

def get_name_value_pairs( arg_list: list[str], debug: bool=False ) -> dict[str, str]:
    """
    Parses a list of strings -- name=value -- into dictionary format { "name":"value" }

    Requires:
        - arg_list is a list of strings

    Ensures:
        - Returns dictionary mapping names to values
        - Only processes strings containing "="
        - Values may themselves contain "=" (split on the first one only)

    Args:
        arg_list: Space delimited input, e.g. from an environment variable
        debug: Whether to print debug information

    Returns:
        Dictionary of name=value pairs
    """
    name_value_pairs = { }

    for i, arg in enumerate( arg_list ):

        if "=" in arg:
            name, value = arg.split( "=", 1 )
            name_value_pairs[ name ] = value
            if debug: print( "[{0}]th arg [{1}] = [{2}]".format( i, name, value ) )
        else:
            if debug: print( "[{0}]th arg [{1}] SKIPPING, name=value format not found".format( i, arg ) )

    return name_value_pairs

def print_banner( msg: str, expletive: bool = False, chunk: str = "¡@#!-$?%^_¿",
                  end: str = "\n\n", prepend_nl: bool = False ) -> None:
    """
    Print a message to console with decorative header/footer lines.

    Requires:
        - msg is a string to display in the banner

    Ensures:
        - Prints the message with decorative lines above and below
        - Uses expletive decoration style if expletive=True
        - Prepends a newline if prepend_nl=True

    Args:
        msg: The message to print in the banner
        expletive: Whether to use "cartoon-style" error decoration (default: False)
        chunk: The string to use for expletive decoration
        end: The string to print after the banner (default: "\n\n")
        prepend_nl: Whether to print a newline before the banner (default: False)
    """
    if prepend_nl: print()

    max_len = 120
    bar_str = ""
    if expletive:
        while len( bar_str ) < max_len:
            bar_str += chunk
    else:
        while len( bar_str ) < max_len:
            bar_str += "-"

    print( bar_str )
    if expletive:
        print( chunk )
        print( chunk, msg )
        print( chunk )
    else:
        print( "-", msg )
    print( bar_str, end=end )

def get_package_root() -> str:
    """Absolute path of the podcast_studio package directory."""
    return os.path.dirname( os.path.dirname( os.path.abspath( __file__ ) ) )

def get_api_key( env_var_name: str, required: bool = False ) -> Optional[str]:
    """
    Get an API key from the environment.

    Requires:
        - env_var_name is a non-empty string

    Ensures:
        - Returns the stripped key when the variable is set and non-blank
        - Returns None when missing and required is False

    Raises:
        - ValueError if the key is missing and required is True
    """
    value = os.environ.get( env_var_name, "" ).strip()
    if value:
        return value

    if required:
        raise ValueError( f"API key not found, set the {env_var_name} environment variable" )

    return None

def truncate_string( string: str, max_len: int = 64 ) -> str:
    """
    Truncate a string for log output.

    Ensures:
        - Returns the string unchanged if it fits
        - Otherwise returns the first max_len characters followed by "..."
    """
    if len( string ) <= max_len:
        return string
    return string[ :max_len ] + "..."
