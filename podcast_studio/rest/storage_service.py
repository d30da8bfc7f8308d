"""
Object storage for generated and uploaded audio.

Two backends with the same async interface:
    - SupabaseStorageService: Supabase Storage buckets (production)
    - LocalStorageService: files under the static directory (development, tests)

Usage:
    storage = create_storage_service( config_mgr )
    url = await storage.upload( data, "merged-podcast-1.mp3", "audio/mpeg", "merged_podcasts" )
"""

import os
import re
import asyncio
import logging
from typing import Optional

from supabase import create_client

from podcast_studio.errors import StorageError
import podcast_studio.utils.util as du

logger = logging.getLogger( __name__ )

SAFE_FILENAME_PATTERN = re.compile( r"[^A-Za-z0-9_.-]" )


def safe_filename( filename: str ) -> str:
    """Replace anything but letters, digits, '_', '.' and '-' with '_'."""
    return SAFE_FILENAME_PATTERN.sub( "_", os.path.basename( filename ) )


class SupabaseStorageService:
    """
    Supabase Storage backend.

    Requires:
        - SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables, or explicit values

    Ensures:
        - upload() returns the object's public URL
        - Blocking SDK calls run in a worker thread
        - Raises StorageError when the upload is rejected
    """

    def __init__( self, url: Optional[str] = None, key: Optional[str] = None, client = None, debug: bool = False, verbose: bool = False ):
        self.debug   = debug
        self.verbose = verbose
        self._url    = url
        self._key    = key
        self._client = client

    @property
    def client( self ):
        """Lazy initialization of the Supabase client."""
        if self._client is None:
            url = self._url or du.get_api_key( "SUPABASE_URL", required=True )
            key = self._key or du.get_api_key( "SUPABASE_SERVICE_KEY", required=True )
            self._client = create_client( url, key )
        return self._client

    def _upload_sync( self, data: bytes, path: str, content_type: str, bucket: str ) -> str:
        storage = self.client.storage.from_( bucket )
        storage.upload( path, data, file_options={ "contentType": content_type } )
        return storage.get_public_url( path )

    async def upload( self, data: bytes, filename: str, content_type: str, bucket: str ) -> str:
        """
        Upload bytes and return the public URL.

        Raises:
            - StorageError on any SDK failure
        """
        path = safe_filename( filename )
        try:
            url = await asyncio.to_thread( self._upload_sync, data, path, content_type, bucket )

        except Exception as e:
            logger.error( f"Supabase upload of [{bucket}/{path}] failed: {e}" )
            raise StorageError( f"Upload failed: {e}" ) from e

        if self.debug: print( f"[SupabaseStorageService] Uploaded {len( data )} bytes to {bucket}/{path}" )
        return url

    def local_path( self, url: str ) -> Optional[str]:
        """Supabase objects are always fetched over HTTP."""
        return None


class LocalStorageService:
    """
    Local directory backend.

    Files land in {root}/audio/{bucket}/ and are served under {url_prefix}/audio/{bucket}/.
    """

    def __init__( self, root: str = "static", url_prefix: str = "/static", debug: bool = False, verbose: bool = False ):
        self.root       = root
        self.url_prefix = url_prefix.rstrip( "/" )
        self.debug      = debug
        self.verbose    = verbose

    def _write_sync( self, data: bytes, directory: str, path: str ) -> None:
        os.makedirs( directory, exist_ok=True )
        with open( path, "wb" ) as output:
            output.write( data )

    async def upload( self, data: bytes, filename: str, content_type: str, bucket: str ) -> str:
        """
        Write bytes to disk and return their URL path.

        Raises:
            - StorageError when the file cannot be written
        """
        name      = safe_filename( filename )
        directory = os.path.join( self.root, "audio", bucket )
        path      = os.path.join( directory, name )

        try:
            await asyncio.to_thread( self._write_sync, data, directory, path )

        except OSError as e:
            logger.error( f"Local upload of [{path}] failed: {e}" )
            raise StorageError( f"Upload failed: {e}" ) from e

        if self.debug: print( f"[LocalStorageService] Wrote {len( data )} bytes to {path}" )
        return f"{self.url_prefix}/audio/{bucket}/{name}"

    def local_path( self, url: str ) -> Optional[str]:
        """
        Map a URL returned by upload() back to its file.

        Ensures:
            - Returns None for URLs outside url_prefix, or that escape root
        """
        prefix = f"{self.url_prefix}/"
        if not url.startswith( prefix ):
            return None

        root = os.path.abspath( self.root )
        path = os.path.abspath( os.path.join( root, url[ len( prefix ): ] ) )
        if os.path.commonpath( [ root, path ] ) != root:
            logger.warning( f"Rejected static URL outside the storage root: {url}" )
            return None

        return path


def create_storage_service( config_mgr, debug: bool = False, verbose: bool = False ):
    """
    Select the backend from the `storage backend` setting.

    Raises:
        - ValueError for an unknown backend
    """
    backend = config_mgr.get( "storage backend", "local" ).lower()

    if backend == "supabase":
        return SupabaseStorageService( debug=debug, verbose=verbose )
    if backend == "local":
        return LocalStorageService(
            root       = config_mgr.get( "storage local root", "static" ),
            url_prefix = config_mgr.get( "static url prefix", "/static" ),
            debug      = debug,
            verbose    = verbose
        )
    raise ValueError( f"Unknown storage backend: {backend}" )
