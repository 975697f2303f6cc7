"""HTTP 路由包。"""
