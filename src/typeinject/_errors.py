class ResolutionError(RuntimeError):
    pass


class AmbiguousResolutionError(ResolutionError):
    pass
