#!/usr/bin/env python
#-*- coding: utf-8 -*-
'''
webapp.py
=========
Implements the IIIF Image API 2.1 <http://iiif.io/api/image/2.1/>, up to the
features switched on in the [features] section of the config.
'''

from tempfile import SpooledTemporaryFile
from urllib.parse import urlsplit

from werkzeug.http import http_date, parse_date
from werkzeug.wrappers import Request, Response
from werkzeug.wsgi import wrap_file

from marmoset import constants
from marmoset.config import (
    default_config_path, parse_address, read_config, tile_sizes_from_config,
)
from marmoset.features import FeatureSet
from marmoset.identifiers import Identifier
from marmoset.img_info import ImageInfo, InfoOverrideStore
from marmoset.img_request import ImageRequest
from marmoset.log_config import configure_logging
from marmoset.marmoset_exception import (
    MarmosetException,
    ResourceNotFoundException,
    SyntaxException,
)
from marmoset.transforms import Transformer

# Rendered images bigger than this spill from memory to a temporary file.
DEFAULT_SPOOL_MAX_SIZE = 10 * 1024 * 1024


def get_debug_config(src_img_root=None, config_file_path=None):
    # read the packaged config, but log everything to the console
    config = read_config(config_file_path or default_config_path())
    config['logging']['log_to'] = 'console'
    config['logging']['log_level'] = 'DEBUG'
    if src_img_root is not None:
        config['resolver']['src_img_root'] = src_img_root
    return config


def create_app(debug=False, config_file_path=''):
    if debug:
        config = get_debug_config()
    else:
        config = read_config(config_file_path or default_config_path())
    return Marmoset(config)


class MarmosetResponse(Response):
    '''A Response that knows which of the IIIF protocol features (CORS,
    profile link header) it should add.
    '''
    def __init__(self, response=None, status=None, content_type=None, features=None, **kwargs):
        super(MarmosetResponse, self).__init__(
            response=response, status=status, content_type=content_type, **kwargs
        )
        self.features = features
        if features is not None and features.profile_link_header:
            self.add_link('<%s>;rel="profile"' % (features.profile()[0],))

    def add_link(self, link):
        if 'Link' in self.headers:
            self.headers['Link'] = '%s,%s' % (self.headers['Link'], link)
        else:
            self.headers['Link'] = link

    def set_acao(self):
        if self.features is not None and self.features.cors:
            self.headers['Access-Control-Allow-Origin'] = '*'


ERROR_LABELS = {
    400: 'Bad Request',
    404: 'Not Found',
    500: 'Server Side Error',
    501: 'Not Implemented',
}


class ErrorResponse(MarmosetResponse):
    def __init__(self, status, message, features=None):
        label = ERROR_LABELS.get(status, 'Error')
        message = '%s: %s (%d)' % (label, message, status)
        super(ErrorResponse, self).__init__(message, status, 'text/plain', features)
        self.set_acao()


class MarmosetRequest(object):
    '''Works out what kind of IIIF request a path is, relative to the path of
    the IIIF base URL.

    ``request_type`` is one of 'info', 'image', 'redirect_info',
    'bad_image_request' or 'not_found'.
    '''

    def __init__(self, request, base_path='', redirect_id_slash_to_info=True):
        # werkzeug has already unquoted the path; identifiers are never
        # unquoted a second time.
        self._path = request.path
        self._request = request
        self._base_path = base_path
        self._redirect_id_slash_to_info = redirect_id_slash_to_info
        self._dissect_uri()

    def _dissect_uri(self):
        self.ident = ''
        self.params = ''
        self.path = ''

        if self._path != self._base_path and not self._path.startswith(self._base_path + '/'):
            self.request_type = 'not_found'
            return

        self.path = self._path[len(self._base_path):]
        if self.path in ('', '/'):
            self.request_type = 'not_found'
            return

        info_match = constants.INFO_RE.match(self.path)
        image_match = constants.IMAGE_RE.match(self.path)

        if info_match:
            self.ident = info_match.group('ident')
            self.params = 'info.json'
            self.request_type = 'info'

        elif image_match:
            groups = image_match.groupdict()
            self.ident = groups.pop('ident')
            self.params = groups
            self.request_type = 'image'

        #if the request didn't match the stricter regexes above, but it does
        #match this one, we know we have an invalid image request, so we can
        #return a 400 BadRequest to the user.
        elif constants.LOOSER_IMAGE_RE.match(self.path):
            self.request_type = 'bad_image_request'

        else: #treat it as a redirect_info
            ident = self.path[1:]
            if ident.endswith('/'):
                if not self._redirect_id_slash_to_info:
                    self.request_type = 'not_found'
                    return
                ident = ident[:-1]
            self.ident = ident
            self.request_type = 'redirect_info'


class Marmoset(object):

    def __init__(self, app_configs):
        '''The WSGI Application.
        Args:
            app_configs ({}):
                A dictionary of dictionaries that represents the
                marmoset.conf file.
        '''
        self.app_configs = app_configs
        self.logger = configure_logging(app_configs['logging'])
        self.logger.debug('Marmoset initialized with these settings:')
        for key in self.app_configs:
            if key == 'DEFAULT':
                continue
            for sub_key in self.app_configs[key]:
                self.logger.debug('%s.%s=%s', key, sub_key, self.app_configs[key][sub_key])

        _marmoset_config = self.app_configs['marmoset.Marmoset']
        self.iiif_url = _marmoset_config['iiif_url'].rstrip('/')
        self.base_path = urlsplit(self.iiif_url).path.rstrip('/')
        self.redirect_id_slash_to_info = _marmoset_config.get('redirect_id_slash_to_info', True)
        self.spool_max_size = _marmoset_config.get('spool_max_size', DEFAULT_SPOOL_MAX_SIZE)

        self.features = FeatureSet.from_config(
            self.app_configs['features'],
            tile_sizes=tile_sizes_from_config(_marmoset_config)
        )
        self.transformer = Transformer(self.app_configs['transforms'], self.features)
        self.resolver = self._load_resolver()
        self.info_overrides = InfoOverrideStore(
            self.resolver,
            self.app_configs['resolver'].get('info_override_suffix', '-info.json')
        )

    def _load_resolver(self):
        impl = self.app_configs['resolver']['impl']
        ResolverClass = self._import_class(impl)
        return ResolverClass(self.app_configs['resolver'])

    def _import_class(self, qname):
        '''Imports a class AND returns it (the class, not an instance).
        '''
        module_name = '.'.join(qname.split('.')[:-1])
        class_name = qname.split('.')[-1]
        module = __import__(module_name, fromlist=[class_name])
        self.logger.debug('Imported %s', qname)
        return getattr(module, class_name)

    def wsgi_app(self, environ, start_response):
        request = Request(environ)
        response = self.route(request)
        return response(environ, start_response)

    def __call__(self, environ, start_response):
        '''
        This makes Marmoset executable.
        '''
        return self.wsgi_app(environ, start_response)

    def resource_uri(self, ident):
        '''The URL of an image; its info.json is at this URL + /info.json.'''
        return '%s/%s' % (self.iiif_url, ident.url_segment)

    def route(self, request):
        marmoset_request = MarmosetRequest(
            request, self.base_path, self.redirect_id_slash_to_info
        )
        request_type = marmoset_request.request_type

        try:
            if request_type == 'not_found':
                raise ResourceNotFoundException('no IIIF image at %s' % (request.path,))

            if request_type == 'bad_image_request':
                return ErrorResponse(400, 'request does not match the IIIF syntax', self.features)

            if request_type == 'redirect_info':
                return self.get_redirect(request, Identifier(marmoset_request.ident))

            if request_type == 'info':
                ident = Identifier(marmoset_request.ident)
                if request.method == 'OPTIONS':
                    r = MarmosetResponse(status=200, features=self.features)
                    r.set_acao()
                    return r
                return self.get_info(request, ident)

            # request_type == 'image'
            image_request = ImageRequest.from_segments(
                ident=marmoset_request.ident,
                path=marmoset_request.path,
                **marmoset_request.params
            )
            return self.get_img(request, image_request)

        except MarmosetException as e:
            return self.error_response(request, e)
        except OSError as e:
            # Typically a permissions problem with the source or the
            # temporary directory.
            self.logger.exception('Error serving %s: %s', request.path, e)
            return ErrorResponse(500, 'unable to read or write image data', self.features)

    def error_response(self, request, error):
        status = error.http_status
        if status >= 500:
            self.logger.error('%s for %s: %s', error.__class__.__name__, request.path, error,
                exc_info=True)
        else:
            self.logger.info('%d for %s: %s', status, request.path, error)
        return ErrorResponse(status, str(error), self.features)

    def get_redirect(self, request, ident):
        if not self.resolver.is_resolvable(ident):
            if self.is_partial_image_request(ident):
                raise SyntaxException('request does not match the IIIF syntax')
            raise ResourceNotFoundException('could not resolve identifier: %s' % (ident,))
        if not self.features.base_uri_redirect:
            raise ResourceNotFoundException('no IIIF image at %s' % (request.path,))

        r = MarmosetResponse(status=303, features=self.features)
        r.headers['Location'] = '%s/info.json' % (self.resource_uri(ident),)
        r.set_acao()
        return r

    def is_partial_image_request(self, ident):
        '''True if ``ident`` is a known identifier followed by one to three
        segments of an image request, e.g. 'abc/full/full/0'.
        '''
        segments = ident.value.split('/')
        for n in range(1, 4):
            prefix = '/'.join(segments[:-n])
            if prefix and self.resolver.is_resolvable(Identifier(prefix)):
                return True
        return False

    def get_info(self, request, ident):
        uri = self.resource_uri(ident)
        info = self.info_overrides.load(ident, uri)
        if info is None:
            with self.resolver.resolve(ident) as resource:
                info = ImageInfo.from_resource(self.features, resource, uri).to_iiif_json()

        r = MarmosetResponse(info, status=200, features=self.features)
        r.set_acao()
        if self.features.jsonld_media_type and self.accepts_jsonld(request):
            r.content_type = constants.JSONLD_MEDIA_TYPE
        else:
            r.content_type = constants.JSON_MEDIA_TYPE
            r.add_link(
                '<%s>;rel="http://www.w3.org/ns/json-ld#context";type="%s"' %
                (constants.CONTEXT, constants.JSONLD_MEDIA_TYPE)
            )
        return r

    @staticmethod
    def accepts_jsonld(request):
        return any(
            value == constants.JSONLD_MEDIA_TYPE
            for value, quality in request.accept_mimetypes
        )

    def get_img(self, request, image_request):
        '''Make an image.

        Everything that can be rejected without decoding is rejected before
        the source is opened: the syntax (when ``image_request`` was built),
        then the features, then the geometry.
        '''
        self.features.check(image_request)

        with self.resolver.resolve(image_request.ident) as resource:
            plan = self.transformer.plan(
                image_request, resource.dimensions, resource.layers
            )

            # Round the mtime to the precision of the HTTP date we send, so
            # it compares properly with If-Modified-Since.
            last_mod = parse_date(http_date(resource.last_modified))
            ims = parse_date(request.headers.get('If-Modified-Since'))
            if ims and ims >= last_mod:
                self.logger.debug('Sent 304 for %s', image_request.request_path)
                r = MarmosetResponse(status=304, features=self.features)
                r.set_acao()
                return r

            spool = SpooledTemporaryFile(max_size=self.spool_max_size)
            try:
                resource.apply(image_request, self.transformer, spool, plan)
            except BaseException:
                spool.close()
                raise
            width, height = resource.dimensions

        length = spool.tell()
        spool.seek(0)

        r = MarmosetResponse(
            wrap_file(request.environ, spool),
            status=200,
            content_type=image_request.media_type,
            features=self.features,
            direct_passthrough=True,
        )
        r.call_on_close(spool.close)
        r.set_acao()
        r.last_modified = last_mod
        r.headers['Content-Length'] = str(length)
        if self.features.canonical_link_header:
            r.add_link('<%s/%s>;rel="canonical"' % (
                self.iiif_url, image_request.canonical_request_path(width, height)
            ))
        return r


if __name__ == '__main__':
    from werkzeug.serving import run_simple

    app = create_app(debug=True)
    host, port = parse_address(app.app_configs['marmoset.Marmoset'].get('address', 'localhost:12415'))
    run_simple(host, port, app, use_debugger=True, use_reloader=True)
