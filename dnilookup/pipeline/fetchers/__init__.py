from .browser import BrowserResult, BrowserSession

__all__ = ['BrowserResult', 'BrowserSession']
