"""领域层模型与协议。

包含：
- models: Message / StreamChunk / RequestContext 以及上游请求与响应的 schema。
- session: 会话历史存储的 SessionStore 抽象。
- exceptions: 业务异常类型定义。
"""
