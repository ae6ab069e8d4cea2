from flask import jsonify


class ApiError(Exception):
    """A business-rule failure carrying the code and status the client sees."""

    def __init__(self, code, message, status_code=400):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    def to_response(self):
        return jsonify({
            'success': False,
            'error': {
                'code': self.code,
                'message': self.message
            }
        }), self.status_code


def validation_error_response(error):
    details = [
        {
            'field': '.'.join(str(part) for part in err['loc']),
            'message': err['msg']
        }
        for err in error.errors()
    ]
    return jsonify({
        'success': False,
        'error': {
            'code': 'VALIDATION_ERROR',
            'message': 'Request data is invalid',
            'details': details
        }
    }), 400
