# -*- coding: utf-8 -*-
"""
AWS Provider 模块

功能：
- 创建账号客户端集合（支持凭证刷新）
- 统计 S3、ACM、CloudFront 资源使用量
- 两级回退解析 Service Quotas 配额值
"""
